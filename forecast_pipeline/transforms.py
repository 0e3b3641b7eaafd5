"""Composable preprocessing steps and the chain that applies them in order."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import Any

import numpy as np

from forecast_pipeline.exceptions import (
    InvalidConfigurationError,
    MissingFieldError,
    ShapeMismatchError,
)
from forecast_pipeline.fields import FieldName
from forecast_pipeline.record import TimeSeriesRecord, time_length
from forecast_pipeline.time_features import (
    TimeFeature,
    age_feature,
    compute_time_features,
    time_features_from_frequency,
)

logger = logging.getLogger(__name__)


class Transform(ABC):
    """A named, stateless step that mutates a record in place.

    Subclasses declare which fields they read (``required_fields``), create
    (``produced_fields``) and delete (``removed_fields``) so that a chain can
    check field dependencies before any record flows through it.
    """

    required_fields: tuple[str, ...] = ()
    produced_fields: tuple[str, ...] = ()
    removed_fields: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        """Transform ``record`` (in place) and return it."""

    def flat_apply(
        self,
        record: TimeSeriesRecord,
        rng: np.random.Generator | None = None,
    ) -> list[TimeSeriesRecord]:
        """Apply the step and return the resulting records (one for plain steps)."""
        return [self.apply(record)]

    def output_fields(self, available: set[str]) -> set[str]:
        """Fields present after this step, given the fields present before it."""
        return (available - set(self.removed_fields)) | set(self.produced_fields)

    def __add__(self, other: "Transform | TransformChain") -> "TransformChain":
        return TransformChain([self, other], check=False)

    def __repr__(self) -> str:
        return f"{self.name}()"


class FlatMapTransform(Transform):
    """A step turning one record into zero or more records."""

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        records = self.flat_apply(record)
        if len(records) != 1:
            raise InvalidConfigurationError(
                f"produced {len(records)} records, use flat_apply",
                transform=self.name,
            )
        return records[0]

    @abstractmethod
    def flat_apply(
        self,
        record: TimeSeriesRecord,
        rng: np.random.Generator | None = None,
    ) -> list[TimeSeriesRecord]:
        ...


class TransformChain:
    """Ordered sequence of transforms applied strictly one after the other.

    Construction walks the declared field dependencies of every step and
    fails if a step requires a field that neither the caller guarantees
    (``input_fields``) nor an earlier step produces. Fields missing at apply
    time still raise from the step that needs them.

    Args:
        steps: Transforms (or chains) in application order
        input_fields: Fields every incoming record is guaranteed to carry
        check: Whether to run the construction-time dependency check

    Examples:
        >>> chain = TransformChain([AddObservedValueIndicator()])
        >>> record = TimeSeriesRecord("2020-01-01", "D", {"target": np.array([1.0, np.nan])})
        >>> chain.apply(record)[0]["observed_values"]
        array([1., 0.], dtype=float32)
    """

    def __init__(
        self,
        steps: Iterable["Transform | TransformChain"],
        input_fields: Iterable[str] = (FieldName.TARGET,),
        check: bool = True,
    ):
        self.steps: list[Transform] = []
        for step in steps:
            if isinstance(step, TransformChain):
                self.steps.extend(step.steps)
            else:
                self.steps.append(step)
        self.input_fields = frozenset(input_fields)
        if check:
            self.check_fields()

    def check_fields(self) -> set[str]:
        """Verify declared dependencies and return the fields present at the end."""
        available = set(self.input_fields)
        for step in self.steps:
            for name in step.required_fields:
                if name not in available:
                    raise MissingFieldError(name, transform=step.name)
            available = step.output_fields(available)
        return available

    def apply(
        self,
        record: TimeSeriesRecord,
        rng: np.random.Generator | None = None,
    ) -> list[TimeSeriesRecord]:
        """Run every step on ``record`` and return the resulting records."""
        records = [record]
        for step in self.steps:
            records = [out for current in records for out in step.flat_apply(current, rng=rng)]
            if not records:
                logger.debug(f"Series {record.item_id} produced no records after {step.name}")
                break
        return records

    def __call__(
        self,
        records: Iterable[TimeSeriesRecord],
        rng: np.random.Generator | None = None,
    ) -> Iterator[TimeSeriesRecord]:
        for record in records:
            yield from self.apply(record, rng=rng)

    def __add__(self, other: "Transform | TransformChain") -> "TransformChain":
        return TransformChain([self, other], input_fields=self.input_fields, check=False)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Transform]:
        return iter(self.steps)

    def __repr__(self) -> str:
        return f"TransformChain({self.steps!r})"


class AddObservedValueIndicator(Transform):
    """Mark each step of the target with 1.0 if observed (finite), 0.0 otherwise.

    The target itself is left untouched.
    """

    def __init__(
        self,
        target_field: str = FieldName.TARGET,
        output_field: str = FieldName.OBSERVED_VALUES,
        dtype: Any = np.float32,
    ):
        self.target_field = target_field
        self.output_field = output_field
        self.dtype = dtype
        self.required_fields = (target_field,)
        self.produced_fields = (output_field,)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        target = record.require(self.target_field, transform=self.name)
        observed = np.isfinite(target).astype(self.dtype)
        record.create(self.output_field, observed, transform=self.name)
        return record


class AddAgeFeature(Transform):
    """Add a ``(1, T)`` age channel, strictly increasing with the step index.

    Outside training, ``T`` covers the observed steps plus the
    ``prediction_length`` steps still to be forecast.

    The value at step ``t`` is ``log10(2 + t)`` (base-10 logarithm), or the
    raw index ``t`` when ``log_scale`` is False.
    """

    def __init__(
        self,
        prediction_length: int,
        target_field: str = FieldName.TARGET,
        output_field: str = FieldName.FEAT_DYNAMIC_AGE,
        is_train: bool = False,
        log_scale: bool = True,
    ):
        if prediction_length < 0:
            raise InvalidConfigurationError(
                f"prediction_length must be non-negative, got {prediction_length}",
                transform=self.name,
            )
        self.prediction_length = prediction_length
        self.target_field = target_field
        self.output_field = output_field
        self.is_train = is_train
        self.log_scale = log_scale
        self.required_fields = (target_field,)
        self.produced_fields = (output_field,)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        target = record.require(self.target_field, transform=self.name)
        length = time_length(target) + (0 if self.is_train else self.prediction_length)
        record.create(self.output_field, age_feature(length, self.log_scale), transform=self.name)
        return record


class AddTimeFeature(Transform):
    """Add calendar features of shape ``(num_features, T)``.

    Timestamps run from ``record.start`` with the record frequency. Outside
    training they extend ``prediction_length`` steps past the target.

    Args:
        prediction_length: Horizon length appended outside training
        time_features: Feature functions; derived from the record frequency when None
        is_train: Whether the chain prepares training instances
    """

    def __init__(
        self,
        prediction_length: int,
        time_features: list[TimeFeature] | None = None,
        target_field: str = FieldName.TARGET,
        output_field: str = FieldName.FEAT_TIME,
        is_train: bool = False,
    ):
        if prediction_length < 0:
            raise InvalidConfigurationError(
                f"prediction_length must be non-negative, got {prediction_length}",
                transform=self.name,
            )
        self.prediction_length = prediction_length
        self.time_features = time_features
        self.target_field = target_field
        self.output_field = output_field
        self.is_train = is_train
        self.required_fields = (target_field,)
        self.produced_fields = (output_field,)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        target = record.require(self.target_field, transform=self.name)
        length = time_length(target) + (0 if self.is_train else self.prediction_length)
        features = self.time_features
        if features is None:
            features = time_features_from_frequency(record.freq)
        index = record.freq.date_range(record.start, length)
        record.create(self.output_field, compute_time_features(index, features), transform=self.name)
        return record


class VstackFeatures(Transform):
    """Concatenate dynamic fields along the channel axis into one field.

    One-dimensional inputs count as a single channel. All inputs must share
    the same time length.
    """

    def __init__(
        self,
        output_field: str,
        input_fields: list[str],
        drop_inputs: bool = True,
    ):
        if not input_fields:
            raise InvalidConfigurationError("input_fields must not be empty", transform=self.name)
        self.output_field = output_field
        self.input_fields = list(input_fields)
        self.drop_inputs = drop_inputs
        self.required_fields = tuple(self.input_fields)
        self.produced_fields = (output_field,)
        if drop_inputs:
            self.removed_fields = tuple(f for f in self.input_fields if f != output_field)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        arrays = []
        expected = None
        for name in self.input_fields:
            value = np.asarray(record.require(name, transform=self.name))
            if value.ndim == 1:
                value = value.reshape(1, -1)
            length = time_length(value)
            if expected is None:
                expected = length
            elif length != expected:
                raise ShapeMismatchError(name, expected=expected, actual=length, transform=self.name)
            arrays.append(value)

        stacked = np.vstack(arrays)
        if self.drop_inputs:
            for name in self.input_fields:
                record.pop(name)
        record[self.output_field] = stacked
        return record


class RemoveFields(Transform):
    """Drop fields; names that are absent are ignored."""

    def __init__(self, field_names: list[str]):
        self.field_names = list(field_names)
        self.removed_fields = tuple(self.field_names)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        for name in self.field_names:
            record.pop(name)
        return record


class SelectFields(Transform):
    """Keep only the named fields; every one of them must be present."""

    def __init__(self, input_fields: list[str]):
        self.input_fields = list(input_fields)
        self.required_fields = tuple(self.input_fields)

    def output_fields(self, available: set[str]) -> set[str]:
        return set(self.input_fields)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        kept = {name: record.require(name, transform=self.name) for name in self.input_fields}
        record.fields = kept
        return record


class SetField(Transform):
    """Set a field to a fixed value, replacing any previous value."""

    def __init__(self, output_field: str, value: Any):
        self.output_field = output_field
        self.value = np.asarray(value)
        self.produced_fields = (output_field,)

    def apply(self, record: TimeSeriesRecord) -> TimeSeriesRecord:
        record[self.output_field] = self.value.copy()
        return record
