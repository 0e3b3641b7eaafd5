"""Keyed field store for a single time series."""

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from forecast_pipeline.exceptions import MissingFieldError, ShapeMismatchError
from forecast_pipeline.fields import FieldName
from forecast_pipeline.utils import Frequency


def time_length(array: np.ndarray) -> int:
    """Length of the time axis (always the last axis)."""
    return int(np.shape(array)[-1])


@dataclass
class TimeSeriesRecord:
    """One series: start timestamp, frequency and a mutable field store.

    Dynamic fields keep time on their last axis, so a univariate target is
    ``(T,)`` and a multi-channel feature is ``(channels, T)``. Static fields
    have no time axis.

    A record is mutated in place by each transform of a chain and read by the
    windowing step. Nothing is cached on it.

    Args:
        start: Timestamp of index 0
        freq: Frequency descriptor or pandas-style string
        fields: Mapping from field name to array
        item_id: Optional identifier of the series
        metadata: Free-form values carried along (e.g. forecast start)

    Examples:
        >>> record = TimeSeriesRecord("1949-01", "M", {"target": np.arange(120.0)})
        >>> record.length
        120
    """

    start: pd.Timestamp
    freq: Frequency
    fields: dict[str, np.ndarray] = field(default_factory=dict)
    item_id: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.start = pd.Timestamp(self.start)
        self.freq = Frequency.parse(self.freq)
        self.fields = {name: np.asarray(value) for name, value in self.fields.items()}

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def __getitem__(self, name: str) -> np.ndarray:
        return self.require(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.fields[name] = np.asarray(value)

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def keys(self) -> list[str]:
        return list(self.fields)

    @property
    def length(self) -> int:
        """Number of observed steps (time length of TARGET)."""
        return time_length(self.require(FieldName.TARGET))

    def require(self, name: str, transform: str | None = None) -> np.ndarray:
        """Return a field or raise ``MissingFieldError`` naming the step."""
        try:
            return self.fields[name]
        except KeyError:
            raise MissingFieldError(name, transform=transform) from None

    def create(
        self,
        name: str,
        value: Any,
        transform: str | None = None,
    ) -> None:
        """Add a field, refusing to replace an existing one of another time length."""
        value = np.asarray(value)
        existing = self.fields.get(name)
        if existing is not None and np.ndim(existing) > 0 and np.ndim(value) > 0:
            if time_length(existing) != time_length(value):
                raise ShapeMismatchError(
                    name,
                    expected=time_length(existing),
                    actual=time_length(value),
                    transform=transform,
                )
        self.fields[name] = value

    def pop(self, name: str, default: Any = None) -> Any:
        return self.fields.pop(name, default)

    def copy(self) -> "TimeSeriesRecord":
        """Shallow copy: new field store, arrays shared."""
        return TimeSeriesRecord(
            start=self.start,
            freq=self.freq,
            fields=dict(self.fields),
            item_id=self.item_id,
            metadata=copy.copy(self.metadata),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], freq: str | Frequency | None = None) -> "TimeSeriesRecord":
        """Build a record from a GluonTS-style dictionary.

        Args:
            data: Dictionary with 'start', 'target' and optional feature keys
            freq: Frequency, required unless ``data`` carries 'freq'

        Examples:
            >>> TimeSeriesRecord.from_dict(
            ...     {"start": "2020-01-01", "freq": "D", "target": [1.0, 2.0]}
            ... ).length
            2
        """
        data = dict(data)
        start = data.pop(FieldName.START)
        freq = data.pop("freq", freq)
        if freq is None:
            raise ValueError("A frequency is required to build a record")
        item_id = data.pop(FieldName.ITEM_ID, None)
        fields = {
            name: np.asarray(value, dtype=np.int64 if name in FieldName.CATEGORICAL else np.float32)
            for name, value in data.items()
            if name in FieldName.DYNAMIC or name in FieldName.STATIC
        }
        metadata = {
            name: value
            for name, value in data.items()
            if name not in fields
        }
        return cls(start=start, freq=freq, fields=fields, item_id=item_id, metadata=metadata)
