"""Inference glue: records in, one ``Forecast`` per record out.

The model is an opaque callable receiving a batch from ``collate_fn`` and
returning either

- a tensor of sampled trajectories, shape (batch, num_samples, prediction_length[, num_variates]), or
- a ``torch.distributions.Distribution`` with batch shape (batch, prediction_length, ...).
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import torch
from torch.distributions import (
    AffineTransform,
    ComposeTransform,
    Distribution,
    Independent,
    PowerTransform,
    TransformedDistribution,
)

from forecast_pipeline.config import PipelineConfig
from forecast_pipeline.dataloader import create_prediction_dataloader
from forecast_pipeline.exceptions import InvalidConfigurationError, ShapeMismatchError
from forecast_pipeline.fields import FieldName
from forecast_pipeline.forecast import DistributionForecast, Forecast, SampleForecast
from forecast_pipeline.record import TimeSeriesRecord

logger = logging.getLogger(__name__)

Model = Callable[[dict[str, Any]], Any]


def _slice_value(value: Any, index: int, ndim: int) -> Any:
    # tensors without the batch axis broadcast over the batch and are kept whole
    if isinstance(value, torch.Tensor) and value.dim() >= ndim:
        return value[index]
    return value


def _slice_transform(
    transform: torch.distributions.Transform, index: int, ndim: int
) -> torch.distributions.Transform:
    if isinstance(transform, ComposeTransform):
        return ComposeTransform([_slice_transform(part, index, ndim) for part in transform.parts])
    if isinstance(transform, AffineTransform):
        return AffineTransform(
            _slice_value(transform.loc, index, ndim),
            _slice_value(transform.scale, index, ndim),
            event_dim=transform.event_dim,
        )
    if isinstance(transform, PowerTransform):
        return PowerTransform(_slice_value(transform.exponent, index, ndim))
    # remaining transforms in torch.distributions carry no batch parameters
    return transform


def _slice_distribution(distribution: Distribution, index: int) -> Distribution:
    """Distribution of one batch element, rebuilt from its stored parameters.

    Wrappers are sliced recursively: ``Independent`` through its base
    distribution, ``TransformedDistribution`` through its base distribution
    and the parameters of its transforms.
    """
    ndim = len(distribution.batch_shape) + len(distribution.event_shape)

    if isinstance(distribution, Independent):
        return Independent(
            _slice_distribution(distribution.base_dist, index),
            distribution.reinterpreted_batch_ndims,
            validate_args=False,
        )
    if type(distribution) is TransformedDistribution:
        return TransformedDistribution(
            _slice_distribution(distribution.base_dist, index),
            [_slice_transform(t, index, ndim) for t in distribution.transforms],
            validate_args=False,
        )

    # parameters are either set on the instance or exposed as class properties
    # (e.g. LogNormal), lazily derived alternatives (probs/logits) are skipped
    params = {}
    for name in distribution.arg_constraints:
        if name in vars(distribution) or isinstance(getattr(type(distribution), name, None), property):
            params[name] = _slice_value(getattr(distribution, name), index, len(distribution.batch_shape))
    if "probs" in params and "logits" in params:
        del params["probs"]
    if not params:
        raise InvalidConfigurationError(
            f"cannot split a batched {type(distribution).__name__} into per-series distributions",
            transform="predict",
        )
    return type(distribution)(**params, validate_args=False)


def _to_forecasts(
    output: Any,
    batch: dict[str, Any],
    config: PipelineConfig,
) -> list[Forecast]:
    item_ids = batch[FieldName.ITEM_ID]
    starts = batch[FieldName.FORECAST_START]
    batch_size = len(item_ids)

    if isinstance(output, Distribution):
        shape = tuple(output.batch_shape)
        if len(shape) < 2 or shape[0] != batch_size or shape[1] != config.prediction_length:
            raise ShapeMismatchError(
                "distribution",
                expected=(batch_size, config.prediction_length),
                actual=shape,
                transform="predict",
            )
        return [
            DistributionForecast(
                _slice_distribution(output, i), starts[i], config.freq, item_id=item_ids[i]
            )
            for i in range(batch_size)
        ]

    if isinstance(output, torch.Tensor):
        output = output.detach().cpu().numpy()
    samples = np.asarray(output)
    if samples.ndim not in (3, 4) or samples.shape[0] != batch_size or samples.shape[2] != config.prediction_length:
        raise ShapeMismatchError(
            "samples",
            expected=f"({batch_size}, num_samples, {config.prediction_length}[, num_variates])",
            actual=samples.shape,
            transform="predict",
        )
    return [
        SampleForecast(samples[i], starts[i], config.freq, item_id=item_ids[i])
        for i in range(batch_size)
    ]


def predict(
    model: Model,
    records: Sequence[TimeSeriesRecord],
    config: PipelineConfig,
    batch_size: int = 32,
    num_workers: int = 0,
) -> list[Forecast]:
    """Forecast every record from the end of its observed history.

    Records are copied before transformation, so the caller's records are left
    untouched. Timing out or cancelling the model call is up to the caller.

    Args:
        model: Callable mapping a collated batch to samples or a distribution
        records: Series to forecast
        config: Pipeline configuration
        batch_size: Number of series per model call
        num_workers: Number of workers for data loading

    Returns:
        One forecast per record, in input order

    Examples:
        >>> def model(batch):
        ...     past = batch["past_target"]
        ...     return past[:, -1:].unsqueeze(1).repeat(1, 100, 12)
        >>> forecasts = predict(model, records, config)
    """
    loader = create_prediction_dataloader(
        records, config, batch_size=batch_size, num_workers=num_workers
    )

    forecasts: list[Forecast] = []
    with torch.no_grad():
        for batch in loader:
            output = model(batch)
            forecasts.extend(_to_forecasts(output, batch, config))

    logger.info(f"Produced {len(forecasts)} forecasts")
    return forecasts
