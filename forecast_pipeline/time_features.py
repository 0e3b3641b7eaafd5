"""Calendar-derived and age features.

Each calendar feature maps the position of a timestamp inside one calendar
cycle to ``[-0.5, 0.5]`` so that its magnitude does not depend on absolute
calendar values.
"""

from collections.abc import Callable

import numpy as np
import pandas as pd

from forecast_pipeline.utils import Frequency

TimeFeature = Callable[[pd.DatetimeIndex], np.ndarray]


def second_of_minute(index: pd.DatetimeIndex) -> np.ndarray:
    return index.second.to_numpy(dtype=np.float64) / 59.0 - 0.5


def minute_of_hour(index: pd.DatetimeIndex) -> np.ndarray:
    return index.minute.to_numpy(dtype=np.float64) / 59.0 - 0.5


def hour_of_day(index: pd.DatetimeIndex) -> np.ndarray:
    return index.hour.to_numpy(dtype=np.float64) / 23.0 - 0.5


def day_of_week(index: pd.DatetimeIndex) -> np.ndarray:
    return index.dayofweek.to_numpy(dtype=np.float64) / 6.0 - 0.5


def day_of_month(index: pd.DatetimeIndex) -> np.ndarray:
    return (index.day.to_numpy(dtype=np.float64) - 1) / 30.0 - 0.5


def day_of_year(index: pd.DatetimeIndex) -> np.ndarray:
    return (index.dayofyear.to_numpy(dtype=np.float64) - 1) / 365.0 - 0.5


def week_of_year(index: pd.DatetimeIndex) -> np.ndarray:
    week = index.isocalendar().week.to_numpy(dtype=np.float64)
    return (week - 1) / 52.0 - 0.5


def month_of_year(index: pd.DatetimeIndex) -> np.ndarray:
    return (index.month.to_numpy(dtype=np.float64) - 1) / 11.0 - 0.5


# Finer cycles are meaningless for coarse frequencies; yearly data has none.
_FEATURES_BY_UNIT: dict[str, list[TimeFeature]] = {
    "Y": [],
    "Q": [month_of_year],
    "M": [month_of_year],
    "W": [day_of_month, week_of_year],
    "D": [day_of_week, day_of_month, day_of_year],
    "B": [day_of_week, day_of_month, day_of_year],
    "H": [hour_of_day, day_of_week, day_of_month, day_of_year],
    "T": [minute_of_hour, hour_of_day, day_of_week, day_of_month, day_of_year],
    "S": [second_of_minute, minute_of_hour, hour_of_day, day_of_week, day_of_month, day_of_year],
}


def time_features_from_frequency(freq: str | Frequency) -> list[TimeFeature]:
    """Calendar features meaningful for a frequency.

    Examples:
        >>> [f.__name__ for f in time_features_from_frequency("M")]
        ['month_of_year']
    """
    return list(_FEATURES_BY_UNIT[Frequency.parse(freq).unit])


def compute_time_features(
    index: pd.DatetimeIndex,
    features: list[TimeFeature],
) -> np.ndarray:
    """Stack feature channels into an array of shape ``(len(features), len(index))``."""
    if not features:
        return np.zeros((0, len(index)), dtype=np.float32)
    return np.vstack([feature(index) for feature in features]).astype(np.float32)


def age_feature(length: int, log_scale: bool = True) -> np.ndarray:
    """Per-step age of a series, strictly increasing in the step index.

    With ``log_scale`` the value at step ``t`` is ``log10(2 + t)``, which
    compresses distant steps while staying unbounded.

    Returns:
        Array of shape ``(1, length)``
    """
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    steps = np.arange(length, dtype=np.float32)
    age = np.log10(2.0 + steps) if log_scale else steps
    return age.reshape(1, length).astype(np.float32)
