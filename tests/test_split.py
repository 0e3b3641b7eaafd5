"""Tests for the windowing step."""

import numpy as np
import pandas as pd
import pytest

from forecast_pipeline.exceptions import (
    InsufficientHistoryError,
    InvalidConfigurationError,
    MissingFieldError,
    ShapeMismatchError,
)
from forecast_pipeline.fields import FieldName
from forecast_pipeline.record import TimeSeriesRecord
from forecast_pipeline.samplers import (
    PredictionSplitSampler,
    TrainingSplitSampler,
    ValidationSplitSampler,
)
from forecast_pipeline.split import InstanceSplit


def make_record(length, **fields):
    target = np.arange(1, length + 1, dtype=np.float32)
    return TimeSeriesRecord("2020-01-01", "D", {"target": target, **fields}, item_id="s")


class TestPredictionWindow:
    """Test the inference-time window."""

    @pytest.mark.parametrize("length", [36, 37, 100, 500])
    def test_full_history_no_padding(self, length):
        """Test a long series: context of exactly context_length and no padding."""
        split = InstanceSplit(PredictionSplitSampler(), context_length=24, prediction_length=12)
        (instance,) = split.flat_apply(make_record(length))
        np.testing.assert_array_equal(
            instance["past_target"], np.arange(length - 23, length + 1, dtype=np.float32)
        )
        assert instance["past_is_pad"].sum() == 0
        assert "future_target" not in instance
        assert "target" not in instance

    @pytest.mark.parametrize("length", [1, 5, 23])
    def test_left_padding(self, length):
        """Test that short histories are left-padded and masked."""
        split = InstanceSplit(
            PredictionSplitSampler(), context_length=24, prediction_length=12, pad_value=-1.0
        )
        (instance,) = split.flat_apply(make_record(length))
        past = instance["past_target"]
        assert past.shape == (24,)
        num_pad = 24 - length
        np.testing.assert_array_equal(past[:num_pad], -1.0)
        np.testing.assert_array_equal(past[num_pad:], np.arange(1, length + 1))
        is_pad = instance["past_is_pad"]
        np.testing.assert_array_equal(is_pad[:num_pad], 1.0)
        np.testing.assert_array_equal(is_pad[num_pad:], 0.0)

    def test_padding_disabled(self):
        """Test that short histories fail when padding is disabled."""
        split = InstanceSplit(
            PredictionSplitSampler(), context_length=24, prediction_length=12, allow_padding=False
        )
        with pytest.raises(InsufficientHistoryError):
            split.flat_apply(make_record(10))
        assert len(split.flat_apply(make_record(24))) == 1

    def test_forecast_start(self):
        """Test the timestamp of the first predicted step."""
        split = InstanceSplit(PredictionSplitSampler(), context_length=3, prediction_length=2)
        (instance,) = split.flat_apply(make_record(10))
        assert instance.metadata[FieldName.FORECAST_START] == pd.Timestamp("2020-01-11")
        assert instance.metadata["split_index"] == 10


class TestFutureKnownFields:
    """Test fields known into the future."""

    def test_future_slice(self):
        """Test past and future slices of a future-known field."""
        feat = np.arange(15, dtype=np.float32).reshape(1, 15)
        split = InstanceSplit(
            PredictionSplitSampler(),
            context_length=4,
            prediction_length=5,
            future_known_fields=["time_feat"],
        )
        (instance,) = split.flat_apply(make_record(10, time_feat=feat))
        np.testing.assert_array_equal(instance["past_time_feat"], [[6, 7, 8, 9]])
        np.testing.assert_array_equal(instance["future_time_feat"], [[10, 11, 12, 13, 14]])

    def test_future_field_too_short(self):
        """Test that a future-known field must reach the end of the horizon."""
        split = InstanceSplit(
            PredictionSplitSampler(),
            context_length=4,
            prediction_length=5,
            future_known_fields=["time_feat"],
        )
        with pytest.raises(ShapeMismatchError) as excinfo:
            split.flat_apply(make_record(10, time_feat=np.zeros((1, 12))))
        assert excinfo.value.field == "time_feat"

    def test_future_field_missing(self):
        """Test that an absent future-known field fails."""
        split = InstanceSplit(
            PredictionSplitSampler(),
            context_length=4,
            prediction_length=5,
            future_known_fields=["time_feat"],
        )
        with pytest.raises(MissingFieldError):
            split.flat_apply(make_record(10))

    def test_padded_multichannel(self):
        """Test left-padding of a multi-channel field."""
        feat = np.ones((3, 8), dtype=np.float32)
        split = InstanceSplit(
            PredictionSplitSampler(),
            context_length=6,
            prediction_length=4,
            future_known_fields=["time_feat"],
        )
        (instance,) = split.flat_apply(make_record(4, time_feat=feat))
        assert instance["past_time_feat"].shape == (3, 6)
        np.testing.assert_array_equal(instance["past_time_feat"][:, :2], 0.0)
        assert instance["future_time_feat"].shape == (3, 4)


class TestTrainingWindows:
    """Test training-time windows."""

    def test_target_window(self):
        """Test that the future target is the slice right after the split."""
        split = InstanceSplit(
            TrainingSplitSampler(num_instances=10, seed=0),
            context_length=5,
            prediction_length=3,
            time_series_fields=["observed_values"],
        )
        record = make_record(30, observed_values=np.ones(30, dtype=np.float32))
        instances = split.flat_apply(record)
        assert len(instances) == 10
        for instance in instances:
            i = instance.metadata["split_index"]
            np.testing.assert_array_equal(instance["past_target"], np.arange(i - 4, i + 1))
            np.testing.assert_array_equal(instance["future_target"], np.arange(i + 1, i + 4))
            assert instance["past_observed_values"].shape == (5,)
            assert "future_observed_values" not in instance

    def test_short_series_no_instances(self):
        """Test that a too-short series yields no instances, not an error."""
        split = InstanceSplit(TrainingSplitSampler(num_instances=4), context_length=5, prediction_length=3)
        assert split.flat_apply(make_record(7)) == []

    def test_validation_holdout(self):
        """Test the held-out split keeps the last horizon as target."""
        split = InstanceSplit(ValidationSplitSampler(), context_length=4, prediction_length=2)
        (instance,) = split.flat_apply(make_record(10))
        np.testing.assert_array_equal(instance["past_target"], [5, 6, 7, 8])
        np.testing.assert_array_equal(instance["future_target"], [9, 10])

    def test_static_fields_copied(self):
        """Test that fields that are not time-indexed pass through."""
        split = InstanceSplit(PredictionSplitSampler(), context_length=2, prediction_length=1)
        record = make_record(5, feat_static_cat=np.array([3]))
        (instance,) = split.flat_apply(record)
        np.testing.assert_array_equal(instance["feat_static_cat"], [3])

    def test_original_record_untouched(self):
        """Test that instances are built from copies."""
        split = InstanceSplit(PredictionSplitSampler(), context_length=2, prediction_length=1)
        record = make_record(5)
        split.flat_apply(record)
        assert "target" in record

    def test_dummy_value(self):
        """Test replacing unobserved steps of the past target."""
        record = make_record(4)
        record["target"] = np.array([1.0, np.nan, 3.0, 4.0], dtype=np.float32)
        split = InstanceSplit(
            PredictionSplitSampler(), context_length=4, prediction_length=1, dummy_value=0.0
        )
        (instance,) = split.flat_apply(record)
        np.testing.assert_array_equal(instance["past_target"], [1.0, 0.0, 3.0, 4.0])

    def test_short_past_field(self):
        """Test that a past-only field shorter than the target fails."""
        split = InstanceSplit(
            PredictionSplitSampler(),
            context_length=2,
            prediction_length=1,
            time_series_fields=["observed_values"],
        )
        with pytest.raises(ShapeMismatchError):
            split.flat_apply(make_record(5, observed_values=np.ones(4)))


class TestConfiguration:
    """Test constructor validation."""

    @pytest.mark.parametrize("context_length,prediction_length", [(0, 1), (-3, 1), (5, 0), (5, -1)])
    def test_non_positive_lengths(self, context_length, prediction_length):
        """Test that window lengths must be positive."""
        with pytest.raises(InvalidConfigurationError):
            InstanceSplit(PredictionSplitSampler(), context_length, prediction_length)

    def test_apply_single(self):
        """Test that apply returns the single instance."""
        split = InstanceSplit(PredictionSplitSampler(), context_length=2, prediction_length=1)
        instance = split.apply(make_record(5))
        assert instance["past_target"].shape == (2,)
