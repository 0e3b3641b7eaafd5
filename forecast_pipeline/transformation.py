"""Standard chain construction from a ``PipelineConfig``."""

import logging

import numpy as np

from forecast_pipeline.config import PipelineConfig
from forecast_pipeline.exceptions import InvalidConfigurationError
from forecast_pipeline.fields import FieldName
from forecast_pipeline.lags import get_lags_for_frequency
from forecast_pipeline.samplers import InstanceSampler, PredictionSplitSampler, create_sampler
from forecast_pipeline.split import InstanceSplit
from forecast_pipeline.transforms import (
    AddAgeFeature,
    AddObservedValueIndicator,
    AddTimeFeature,
    RemoveFields,
    SelectFields,
    SetField,
    Transform,
    TransformChain,
    VstackFeatures,
)

logger = logging.getLogger(__name__)

# Flat registry of the step catalog, keyed by name
TRANSFORMS: dict[str, type[Transform]] = {
    "add_observed_value_indicator": AddObservedValueIndicator,
    "add_age_feature": AddAgeFeature,
    "add_time_feature": AddTimeFeature,
    "vstack_features": VstackFeatures,
    "remove_fields": RemoveFields,
    "select_fields": SelectFields,
    "set_field": SetField,
    "instance_split": InstanceSplit,
}


def create_transform(kind: str, **kwargs) -> Transform:
    """Build a catalog step from its registered name.

    Examples:
        >>> create_transform("remove_fields", field_names=["feat_static_real"])
        RemoveFields()
    """
    try:
        transform_cls = TRANSFORMS[kind]
    except KeyError:
        raise InvalidConfigurationError(
            f"Unknown transform '{kind}', expected one of {sorted(TRANSFORMS)}"
        ) from None
    return transform_cls(**kwargs)


def create_instance_sampler(config: PipelineConfig, is_train: bool) -> InstanceSampler:
    """Training sampler configured by ``train_sampler_kind``, or the prediction sampler."""
    if not is_train:
        return PredictionSplitSampler()
    num_instances = config.num_instances
    if config.train_sampler_kind == "uniform":
        num_instances = int(num_instances)
    return create_sampler(config.train_sampler_kind, num_instances=num_instances, seed=config.seed)


def lags_for_config(config: PipelineConfig) -> list[int]:
    """Lag offsets a model may read from the context, bounded by ``lags_max``.

    Defaults to the context length as upper bound so that every lag points
    inside the context window.
    """
    lag_ub = config.lags_max if config.lags_max is not None else config.context_length
    return get_lags_for_frequency(config.frequency, lag_ub=lag_ub)


def input_fields(config: PipelineConfig) -> list[str]:
    """Fields incoming records must carry for the configured chain."""
    fields = [FieldName.TARGET]
    if config.use_feat_static_cat:
        fields.append(FieldName.FEAT_STATIC_CAT)
    if config.use_feat_static_real:
        fields.append(FieldName.FEAT_STATIC_REAL)
    if config.use_feat_dynamic_real:
        fields.append(FieldName.FEAT_DYNAMIC_REAL)
    return fields


def create_transformation(
    config: PipelineConfig,
    is_train: bool,
    instance_sampler: InstanceSampler | None = None,
) -> TransformChain:
    """Build the standard chain turning raw records into model instances.

    Steps, in order:
    - drop optional features the config disables
    - zero placeholders for disabled static features
    - observed-value indicator
    - calendar features (and age) over history, plus the horizon outside training
    - stacking of calendar, age and dynamic real features into ``time_feat``
    - windowing with the training sampler (``is_train``) or the prediction sampler

    Args:
        config: Pipeline configuration
        is_train: Build the training chain instead of the prediction chain
        instance_sampler: Override of the sampler chosen from the config

    Returns:
        TransformChain checked against the fields the config requires

    Examples:
        >>> config = PipelineConfig(context_length=24, prediction_length=12, freq="M")
        >>> chain = create_transformation(config, is_train=False)
        >>> [step.name for step in chain][-1]
        'InstanceSplit'
    """
    steps: list[Transform] = []

    removed = []
    if not config.use_feat_static_real:
        removed.append(FieldName.FEAT_STATIC_REAL)
    if not config.use_feat_dynamic_real:
        removed.append(FieldName.FEAT_DYNAMIC_REAL)
    if not config.use_feat_static_cat:
        removed.append(FieldName.FEAT_STATIC_CAT)
    if removed:
        steps.append(RemoveFields(field_names=removed))

    if not config.use_feat_static_cat:
        steps.append(SetField(FieldName.FEAT_STATIC_CAT, np.zeros(1, dtype=np.int64)))
    if not config.use_feat_static_real:
        steps.append(SetField(FieldName.FEAT_STATIC_REAL, np.zeros(1, dtype=np.float32)))

    steps.append(AddObservedValueIndicator())
    steps.append(AddTimeFeature(prediction_length=config.prediction_length, is_train=is_train))

    stacked = [FieldName.FEAT_TIME]
    if config.use_age_feature:
        steps.append(AddAgeFeature(prediction_length=config.prediction_length, is_train=is_train))
        stacked.append(FieldName.FEAT_DYNAMIC_AGE)
    if config.use_feat_dynamic_real:
        stacked.append(FieldName.FEAT_DYNAMIC_REAL)
    steps.append(VstackFeatures(output_field=FieldName.FEAT_TIME, input_fields=stacked))

    sampler = instance_sampler or create_instance_sampler(config, is_train)
    steps.append(
        InstanceSplit(
            instance_sampler=sampler,
            context_length=config.context_length,
            prediction_length=config.prediction_length,
            time_series_fields=[FieldName.OBSERVED_VALUES],
            future_known_fields=[FieldName.FEAT_TIME],
            pad_value=config.pad_value,
            allow_padding=config.allow_padding,
        )
    )

    chain = TransformChain(steps, input_fields=input_fields(config))
    logger.debug(f"Built {'training' if is_train else 'prediction'} chain: {chain}")
    return chain
