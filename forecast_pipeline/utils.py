"""Frequency parsing and calendar arithmetic for time series records."""

import re
from dataclasses import dataclass
from typing import Literal

import pandas as pd

BaseUnit = Literal["Y", "Q", "M", "W", "D", "B", "H", "T", "S"]

# Common pandas frequency aliases
_UNIT_MAP: dict[str, BaseUnit] = {
    "Y": "Y", "YE": "Y", "YS": "Y", "A": "Y", "AS": "Y",  # Year
    "Q": "Q", "QE": "Q", "QS": "Q",  # Quarter
    "M": "M", "ME": "M", "MS": "M",  # Month
    "W": "W",  # Week
    "D": "D",  # Day
    "B": "B", "C": "B",  # Business / custom day
    "H": "H", "h": "H",  # Hour
    "T": "T", "min": "T",  # Minute
    "S": "S", "s": "S",  # Second
}

_WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")

_FREQ_PATTERN = re.compile(r"^(\d*)([A-Za-z]+)(?:-([A-Za-z]{3}))?$")


@dataclass(frozen=True)
class Frequency:
    """Calendar step between two consecutive observations.

    Args:
        multiple: Number of base units per step (e.g. 15 for '15T')
        unit: Base unit, one of Y, Q, M, W, D, B, H, T, S
        anchor: Optional anchor, only used by weekly frequencies ('W-MON')

    Examples:
        >>> Frequency.parse("15T")
        Frequency(multiple=15, unit='T', anchor=None)
        >>> Frequency.parse("W-MON").anchor
        'MON'
    """

    multiple: int
    unit: BaseUnit
    anchor: str | None = None

    def __post_init__(self):
        if self.multiple < 1:
            raise ValueError(f"Frequency multiple must be positive, got {self.multiple}")
        if self.unit not in _UNIT_MAP.values():
            raise ValueError(f"Unknown frequency unit: {self.unit}")
        if self.anchor is not None and self.anchor not in _WEEKDAYS:
            raise ValueError(f"Unknown frequency anchor: {self.anchor}")

    @classmethod
    def parse(cls, freq: "str | Frequency") -> "Frequency":
        if isinstance(freq, Frequency):
            return freq
        multiple, unit, anchor = parse_frequency(freq)
        return cls(multiple=multiple, unit=unit, anchor=anchor)

    def to_offset(self) -> pd.DateOffset:
        """Pandas offset adding exactly one step of this frequency."""
        n = self.multiple
        if self.unit == "Y":
            return pd.DateOffset(years=n)
        if self.unit == "Q":
            return pd.DateOffset(months=3 * n)
        if self.unit == "M":
            return pd.DateOffset(months=n)
        if self.unit == "W":
            return pd.DateOffset(weeks=n)
        if self.unit == "D":
            return pd.DateOffset(days=n)
        if self.unit == "B":
            return pd.offsets.BDay(n)
        if self.unit == "H":
            return pd.DateOffset(hours=n)
        if self.unit == "T":
            return pd.DateOffset(minutes=n)
        return pd.DateOffset(seconds=n)

    def date_range(self, start: pd.Timestamp, periods: int) -> pd.DatetimeIndex:
        """Timestamps of ``periods`` consecutive steps starting at ``start``.

        Step ``k`` is ``shift(start, k)``. Calendar units are offset from
        ``start`` rather than from the previous step, so a month-end start
        stays on month ends (Jan 31, Feb 29, Mar 31) instead of drifting.
        """
        start = pd.Timestamp(start)
        offset = self.to_offset()
        if self.unit in ("Y", "Q", "M", "B"):
            return pd.DatetimeIndex([start + k * offset for k in range(periods)])
        return pd.date_range(start=start, periods=periods, freq=offset)

    def shift(self, start: pd.Timestamp, steps: int) -> pd.Timestamp:
        """Timestamp ``steps`` steps after ``start``."""
        return pd.Timestamp(start) + steps * self.to_offset()

    def __str__(self) -> str:
        suffix = f"-{self.anchor}" if self.anchor else ""
        prefix = str(self.multiple) if self.multiple != 1 else ""
        return f"{prefix}{self.unit}{suffix}"


def parse_frequency(freq_str: str) -> tuple[int, BaseUnit, str | None]:
    """Parse pandas frequency string to (multiplier, base_unit, anchor).

    Args:
        freq_str: Frequency string like 'H', '15T', '5min', 'D', 'W-SUN', etc.

    Returns:
        Tuple of (multiplier, base_unit, anchor) where base_unit is one of:
        - 'Y': Year
        - 'Q': Quarter
        - 'M': Month
        - 'W': Week
        - 'D': Day
        - 'B': Business day
        - 'H': Hour
        - 'T': Minute (T for Time)
        - 'S': Second

    Examples:
        >>> parse_frequency('H')
        (1, 'H', None)
        >>> parse_frequency('15T')
        (15, 'T', None)
        >>> parse_frequency('W-MON')
        (1, 'W', 'MON')
    """
    match = _FREQ_PATTERN.match(freq_str.strip())
    if not match:
        raise ValueError(f"Cannot parse frequency string: {freq_str}")

    multiplier_str, unit, anchor = match.groups()
    multiplier = int(multiplier_str) if multiplier_str else 1

    base_unit = _UNIT_MAP.get(unit)
    if base_unit is None:
        raise ValueError(f"Unknown frequency unit: {unit}")

    if anchor is not None:
        anchor = anchor.upper()
        # Only weekly anchors select a weekday; yearly/quarterly month anchors
        # ('A-DEC', 'Q-DEC') do not change the step size.
        if base_unit != "W":
            anchor = None
        elif anchor not in _WEEKDAYS:
            raise ValueError(f"Unknown frequency anchor: {anchor}")

    return multiplier, base_unit, anchor
