"""Windowing step slicing a record into fixed-length context/prediction windows."""

import logging

import numpy as np

from forecast_pipeline.exceptions import (
    InsufficientHistoryError,
    InvalidConfigurationError,
    ShapeMismatchError,
)
from forecast_pipeline.fields import FieldName, future, past
from forecast_pipeline.record import TimeSeriesRecord, time_length
from forecast_pipeline.samplers import InstanceSampler
from forecast_pipeline.transforms import FlatMapTransform

logger = logging.getLogger(__name__)


class InstanceSplit(FlatMapTransform):
    """Turn a record into one instance per split index chosen by the sampler.

    For a split index ``i`` every time-indexed field ``x`` becomes
    ``past_x`` covering ``[i - context_length, i)``; missing history is
    left-padded with ``pad_value`` and flagged in ``past_is_pad``. The target
    also gets ``future_target`` covering ``[i, i + prediction_length)`` when
    those values are known (never at pure inference). Future-known fields
    (e.g. calendar features) always get ``future_x`` and must reach
    ``i + prediction_length``. Other fields are copied unchanged.

    Args:
        instance_sampler: Sampler choosing the split indices
        context_length: Length of the context window
        prediction_length: Length of the prediction window
        time_series_fields: Dynamic fields sliced into the context window only
        future_known_fields: Dynamic fields sliced into both windows
        target_field: Name of the target field
        pad_value: Value used to left-pad short histories
        allow_padding: Raise ``InsufficientHistoryError`` instead of padding when False
        dummy_value: Value replacing unobserved (non-finite) steps of past_target; None keeps them

    Examples:
        >>> split = InstanceSplit(PredictionSplitSampler(), context_length=3, prediction_length=2)
        >>> record = TimeSeriesRecord("2020-01-01", "D", {"target": np.arange(5.0)})
        >>> instance = split.apply(record)
        >>> instance["past_target"], "future_target" in instance
        (array([2., 3., 4.]), False)
    """

    def __init__(
        self,
        instance_sampler: InstanceSampler,
        context_length: int,
        prediction_length: int,
        time_series_fields: list[str] | None = None,
        future_known_fields: list[str] | None = None,
        target_field: str = FieldName.TARGET,
        is_pad_field: str = FieldName.IS_PAD,
        forecast_start_field: str = FieldName.FORECAST_START,
        pad_value: float = 0.0,
        allow_padding: bool = True,
        dummy_value: float | None = None,
    ):
        if context_length <= 0:
            raise InvalidConfigurationError(
                f"context_length must be positive, got {context_length}", transform=self.name
            )
        if prediction_length <= 0:
            raise InvalidConfigurationError(
                f"prediction_length must be positive, got {prediction_length}", transform=self.name
            )
        self.instance_sampler = instance_sampler
        self.context_length = context_length
        self.prediction_length = prediction_length
        self.target_field = target_field
        self.future_known_fields = list(future_known_fields or [])
        self.time_series_fields = [
            name
            for name in (time_series_fields or [])
            if name not in self.future_known_fields and name != target_field
        ]
        self.is_pad_field = is_pad_field
        self.forecast_start_field = forecast_start_field
        self.pad_value = pad_value
        self.allow_padding = allow_padding
        self.dummy_value = dummy_value

        sliced = [target_field] + self.time_series_fields + self.future_known_fields
        self.required_fields = tuple(sliced)
        self.removed_fields = tuple(sliced)
        self.produced_fields = (
            tuple(past(name) for name in sliced)
            + tuple(future(name) for name in self.future_known_fields)
            + (past(is_pad_field),)
        )

    def output_fields(self, available: set[str]) -> set[str]:
        # future_target is only present when the horizon is observed
        return super().output_fields(available) | {future(self.target_field)}

    def _past_slice(self, array: np.ndarray, split: int) -> np.ndarray:
        start = split - self.context_length
        if start >= 0:
            return array[..., start:split]
        pad_shape = array.shape[:-1] + (-start,)
        padding = np.full(pad_shape, self.pad_value, dtype=array.dtype)
        return np.concatenate([padding, array[..., :split]], axis=-1)

    def _future_slice(self, array: np.ndarray, split: int) -> np.ndarray:
        return array[..., split:split + self.prediction_length]

    def flat_apply(
        self,
        record: TimeSeriesRecord,
        rng: np.random.Generator | None = None,
    ) -> list[TimeSeriesRecord]:
        target = np.asarray(record.require(self.target_field, transform=self.name))
        series_length = time_length(target)

        for name in self.time_series_fields:
            length = time_length(record.require(name, transform=self.name))
            if length < series_length:
                raise ShapeMismatchError(
                    name, expected=f">= {series_length}", actual=length, transform=self.name
                )
        for name in self.future_known_fields:
            record.require(name, transform=self.name)

        splits = self.instance_sampler.sample(
            series_length, self.context_length, self.prediction_length, rng=rng
        )

        instances = []
        for split in splits:
            instances.append(self._split(record, target, split, series_length))
        return instances

    def _split(
        self,
        record: TimeSeriesRecord,
        target: np.ndarray,
        split: int,
        series_length: int,
    ) -> TimeSeriesRecord:
        if split < self.context_length and not self.allow_padding:
            raise InsufficientHistoryError(
                f"split at {split} needs {self.context_length} steps of history "
                f"and padding is disabled",
                transform=self.name,
                field=self.target_field,
            )

        instance = record.copy()
        for name in [self.target_field] + self.time_series_fields + self.future_known_fields:
            instance.pop(name)

        past_target = self._past_slice(target, split)
        if self.dummy_value is not None:
            past_target = np.where(np.isfinite(past_target), past_target, self.dummy_value)
        instance[past(self.target_field)] = past_target
        if split + self.prediction_length <= series_length:
            instance[future(self.target_field)] = self._future_slice(target, split)

        for name in self.time_series_fields:
            instance[past(name)] = self._past_slice(np.asarray(record[name]), split)

        for name in self.future_known_fields:
            array = np.asarray(record[name])
            required = split + self.prediction_length
            if time_length(array) < required:
                raise ShapeMismatchError(
                    name, expected=f">= {required}", actual=time_length(array), transform=self.name
                )
            instance[past(name)] = self._past_slice(array, split)
            instance[future(name)] = self._future_slice(array, split)

        is_pad = np.zeros(self.context_length, dtype=np.float32)
        num_padded = max(self.context_length - split, 0)
        is_pad[:num_padded] = 1.0
        instance[past(self.is_pad_field)] = is_pad

        instance.metadata[self.forecast_start_field] = record.freq.shift(record.start, split)
        instance.metadata["split_index"] = split
        return instance

    def __repr__(self) -> str:
        return (
            f"InstanceSplit(sampler={self.instance_sampler!r}, "
            f"context_length={self.context_length}, prediction_length={self.prediction_length})"
        )
