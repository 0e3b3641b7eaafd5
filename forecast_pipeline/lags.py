"""Lag offsets considered informative for a given frequency."""

import logging
from fractions import Fraction

from forecast_pipeline.utils import Frequency

logger = logging.getLogger(__name__)


def _make_lags(middle: Fraction, delta: int) -> list[int]:
    """Lags in ``[middle - delta, middle + delta]``."""
    centre = int(middle)
    return list(range(centre - delta, centre + delta + 1))


def _lags_for_second(multiple: Fraction, num_cycles: int = 3) -> list[list[int]]:
    # previous ``num_cycles`` minutes
    return [_make_lags(k * 60 / multiple, 2) for k in range(1, num_cycles + 1)]


def _lags_for_minute(multiple: Fraction, num_cycles: int = 3) -> list[list[int]]:
    # previous ``num_cycles`` hours
    return [_make_lags(k * 60 / multiple, 2) for k in range(1, num_cycles + 1)]


def _lags_for_hour(multiple: Fraction, num_cycles: int = 7) -> list[list[int]]:
    # previous ``num_cycles`` days
    return [_make_lags(k * 24 / multiple, 1) for k in range(1, num_cycles + 1)]


def _lags_for_day(
    multiple: Fraction,
    num_cycles: int = 4,
    days_in_week: int = 7,
    days_in_month: int = 30,
) -> list[list[int]]:
    # previous ``num_cycles`` weeks, plus the last month
    return [
        _make_lags(k * days_in_week / multiple, 1) for k in range(1, num_cycles + 1)
    ] + [_make_lags(days_in_month / multiple, 1)]


def _lags_for_week(multiple: Fraction, num_cycles: int = 3) -> list[list[int]]:
    # previous ``num_cycles`` years, plus the previous 4, 8 and 12 weeks
    return [_make_lags(k * 52 / multiple, 1) for k in range(1, num_cycles + 1)] + [
        [int(4 / multiple), int(8 / multiple), int(12 / multiple)]
    ]


def _lags_for_month(multiple: Fraction, num_cycles: int = 3) -> list[list[int]]:
    # previous ``num_cycles`` years
    return [_make_lags(k * 12 / multiple, 1) for k in range(1, num_cycles + 1)]


def get_lags_for_frequency(
    freq: str | Frequency,
    lag_ub: int = 1200,
    num_lags: int | None = None,
    num_default_lags: int = 7,
) -> list[int]:
    """Sorted, deduplicated lag offsets (in steps) for a frequency.

    A dense range ``1..num_default_lags`` is always included; on top of it the
    lags aligned to the natural calendar cycles of the frequency (minute,
    hour, day, week, month, year) are added. Coarser frequencies get fewer
    lags.

    Args:
        freq: Frequency descriptor or string ('H', '15T', 'D', 'M', ...)
        lag_ub: Largest lag to return (inclusive)
        num_lags: Optional cap on the number of lags returned
        num_default_lags: Size of the dense short-range block

    Returns:
        Strictly increasing list of lags, each in ``[1, lag_ub]``

    Examples:
        >>> get_lags_for_frequency("M")
        [1, 2, 3, 4, 5, 6, 7, 11, 12, 13, 23, 24, 25, 35, 36, 37]
        >>> get_lags_for_frequency("M", lag_ub=12)
        [1, 2, 3, 4, 5, 6, 7, 11, 12]
    """
    if lag_ub < 1:
        raise ValueError(f"lag_ub must be positive, got {lag_ub}")
    if num_lags is not None and num_lags < 0:
        raise ValueError(f"num_lags must be non-negative, got {num_lags}")

    frequency = Frequency.parse(freq)
    n = Fraction(frequency.multiple)
    unit = frequency.unit

    if unit == "Y":
        lags = []
    elif unit == "Q":
        lags = _lags_for_month(n * 3)
    elif unit == "M":
        lags = _lags_for_month(n)
    elif unit == "W":
        lags = _lags_for_week(n)
    elif unit == "D":
        lags = _lags_for_day(n) + _lags_for_week(n / 7)
    elif unit == "B":
        lags = _lags_for_day(n, days_in_week=5, days_in_month=22) + _lags_for_week(n / 5)
    elif unit == "H":
        lags = _lags_for_hour(n) + _lags_for_day(n / 24) + _lags_for_week(n / (24 * 7))
    elif unit == "T":
        lags = (
            _lags_for_minute(n)
            + _lags_for_hour(n / 60)
            + _lags_for_day(n / (60 * 24))
            + _lags_for_week(n / (60 * 24 * 7))
        )
    else:
        lags = _lags_for_second(n) + _lags_for_minute(n / 60) + _lags_for_hour(n / (60 * 60))

    # flatten and keep only the lags beyond the dense block
    seasonal = {lag for sub_list in lags for lag in sub_list if num_default_lags < lag <= lag_ub}
    dense = [lag for lag in range(1, num_default_lags + 1) if lag <= lag_ub]
    result = dense + sorted(seasonal)

    if num_lags is not None:
        result = result[:num_lags]

    logger.debug(f"Lags for frequency {frequency}: {result}")
    return result
