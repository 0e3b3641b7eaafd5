"""Field vocabulary shared by records, transforms and the batching glue."""


class FieldName:
    """Names of the fields a record may carry."""

    ITEM_ID = "item_id"
    START = "start"
    TARGET = "target"

    FEAT_STATIC_CAT = "feat_static_cat"
    FEAT_STATIC_REAL = "feat_static_real"
    FEAT_DYNAMIC_CAT = "feat_dynamic_cat"
    FEAT_DYNAMIC_REAL = "feat_dynamic_real"

    FEAT_TIME = "time_feat"
    FEAT_DYNAMIC_AGE = "feat_dynamic_age"
    OBSERVED_VALUES = "observed_values"

    IS_PAD = "is_pad"
    FORECAST_START = "forecast_start"

    # Fields indexed by time (last axis) at ingestion
    DYNAMIC = (
        TARGET,
        FEAT_DYNAMIC_CAT,
        FEAT_DYNAMIC_REAL,
        FEAT_TIME,
        FEAT_DYNAMIC_AGE,
        OBSERVED_VALUES,
    )
    STATIC = (FEAT_STATIC_CAT, FEAT_STATIC_REAL)
    CATEGORICAL = (FEAT_STATIC_CAT, FEAT_DYNAMIC_CAT)


def past(name: str) -> str:
    """Name of the context-window slice of a field."""
    return f"past_{name}"


def future(name: str) -> str:
    """Name of the prediction-window slice of a field."""
    return f"future_{name}"
