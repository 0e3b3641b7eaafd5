"""Preprocessing and windowing pipeline for probabilistic time series forecasting.

This package turns raw, variable-length series into fixed-shape tensors for
a sequence model:

- Keyed field store per series (``TimeSeriesRecord``)
- Lag and calendar feature generators per frequency
- Composable transforms applied in order by a ``TransformChain``
- Instance samplers: random windows for training, one window at the end of
  the history for prediction
- ``InstanceSplit`` slicing context/prediction windows with padding and masks
- Sample-based and parametric ``Forecast`` outputs

Quick Start:
    >>> from forecast_pipeline import PipelineConfig, TimeSeriesRecord, create_transformation
    >>>
    >>> config = PipelineConfig(context_length=24, prediction_length=12, freq="M")
    >>> chain = create_transformation(config, is_train=False)
    >>> record = TimeSeriesRecord("1949-01", "M", {"target": air_passengers})
    >>> instance, = chain.apply(record)
    >>> instance["past_target"].shape
    (24,)
"""

from forecast_pipeline.config import PipelineConfig
from forecast_pipeline.dataloader import (
    PredictionInstanceDataset,
    TrainingInstanceDataset,
    collate_fn,
    create_prediction_dataloader,
    create_train_dataloader,
)
from forecast_pipeline.dataset import RecordDataset
from forecast_pipeline.exceptions import (
    InsufficientHistoryError,
    InvalidConfigurationError,
    InvalidQuantileError,
    MissingFieldError,
    PipelineError,
    ShapeMismatchError,
)
from forecast_pipeline.fields import FieldName
from forecast_pipeline.forecast import DistributionForecast, Forecast, SampleForecast
from forecast_pipeline.lags import get_lags_for_frequency
from forecast_pipeline.pipeline import predict
from forecast_pipeline.record import TimeSeriesRecord
from forecast_pipeline.samplers import (
    ExpectedNumInstanceSampler,
    InstanceSampler,
    PredictionSplitSampler,
    SequentialSplitSampler,
    TrainingSplitSampler,
    ValidationSplitSampler,
    create_sampler,
)
from forecast_pipeline.split import InstanceSplit
from forecast_pipeline.time_features import age_feature, time_features_from_frequency
from forecast_pipeline.transformation import create_transform, create_transformation
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
from forecast_pipeline.utils import Frequency, parse_frequency

__all__ = [
    # High-level API (recommended)
    "PipelineConfig",
    "create_transformation",
    "create_train_dataloader",
    "create_prediction_dataloader",
    "predict",
    # Data model
    "FieldName",
    "Frequency",
    "TimeSeriesRecord",
    "Forecast",
    "SampleForecast",
    "DistributionForecast",
    "RecordDataset",
    # Transforms
    "Transform",
    "TransformChain",
    "AddObservedValueIndicator",
    "AddAgeFeature",
    "AddTimeFeature",
    "VstackFeatures",
    "RemoveFields",
    "SelectFields",
    "SetField",
    "InstanceSplit",
    "create_transform",
    # Samplers
    "InstanceSampler",
    "TrainingSplitSampler",
    "ExpectedNumInstanceSampler",
    "PredictionSplitSampler",
    "ValidationSplitSampler",
    "SequentialSplitSampler",
    "create_sampler",
    # Batching
    "TrainingInstanceDataset",
    "PredictionInstanceDataset",
    "collate_fn",
    # Errors
    "PipelineError",
    "MissingFieldError",
    "ShapeMismatchError",
    "InvalidConfigurationError",
    "InsufficientHistoryError",
    "InvalidQuantileError",
    # Utilities
    "get_lags_for_frequency",
    "time_features_from_frequency",
    "age_feature",
    "parse_frequency",
]

__version__ = "0.1.0"
