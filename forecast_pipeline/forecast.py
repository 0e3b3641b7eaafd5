"""Predictive distributions over a forecast horizon."""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import pandas as pd
import torch

from forecast_pipeline.exceptions import InvalidConfigurationError, InvalidQuantileError
from forecast_pipeline.utils import Frequency


def _check_quantile(q: float | str) -> float:
    try:
        level = float(q)
    except (TypeError, ValueError):
        raise InvalidQuantileError(q) from None
    if not 0.0 < level < 1.0:
        raise InvalidQuantileError(q)
    return level


class Forecast(ABC):
    """Forecast anchored at ``start_date`` spanning ``prediction_length`` steps.

    Derived views (``mean``, ``quantile``...) are recomputed on every access
    from the stored samples or distribution parameters.
    """

    start_date: pd.Timestamp
    freq: Frequency
    prediction_length: int
    item_id: Any
    info: dict[str, Any] | None

    @property
    @abstractmethod
    def mean(self) -> np.ndarray:
        """Per-step mean of the predictive distribution."""

    @abstractmethod
    def quantile(self, q: float | str) -> np.ndarray:
        """Per-step quantile at level ``q`` in (0, 1)."""

    @property
    def median(self) -> np.ndarray:
        return self.quantile(0.5)

    @property
    def index(self) -> pd.DatetimeIndex:
        """Timestamps of the forecast horizon."""
        return self.freq.date_range(self.start_date, self.prediction_length)

    @property
    def mean_ts(self) -> pd.Series:
        """Mean as a series indexed by the horizon timestamps (univariate only)."""
        mean = self.mean
        if mean.ndim != 1:
            raise ValueError("mean_ts is only defined for univariate forecasts")
        return pd.Series(mean, index=self.index)

    def prediction_interval(self, level: float) -> tuple[np.ndarray, np.ndarray]:
        """Central interval covering ``level`` of the predictive mass.

        Examples:
            >>> lower, upper = forecast.prediction_interval(0.8)  # 10% and 90% quantiles
        """
        if not 0.0 < level < 1.0:
            raise InvalidQuantileError(level)
        alpha = (1.0 - level) / 2.0
        return self.quantile(alpha), self.quantile(1.0 - alpha)


class SampleForecast(Forecast):
    """Forecast represented by sampled trajectories.

    Args:
        samples: Array of shape (num_samples, prediction_length) or
            (num_samples, prediction_length, num_variates)
        start_date: Timestamp of the first forecast step
        freq: Frequency of the series
        item_id: Optional identifier of the series
        info: Optional extra information

    Examples:
        >>> forecast = SampleForecast(np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]), "2020-01-01", "D")
        >>> forecast.mean
        array([3., 4.])
        >>> forecast.quantile(0.5)
        array([3., 4.])
    """

    def __init__(
        self,
        samples: np.ndarray,
        start_date: pd.Timestamp | str,
        freq: str | Frequency,
        item_id: Any = None,
        info: dict[str, Any] | None = None,
    ):
        samples = np.array(samples, dtype=np.float64, copy=True)
        if samples.ndim not in (2, 3):
            raise InvalidConfigurationError(
                f"samples must have shape (num_samples, prediction_length[, num_variates]), "
                f"got {samples.shape}"
            )
        if samples.shape[0] < 1:
            raise InvalidConfigurationError("at least one sample is required")
        if samples.shape[1] < 1:
            raise InvalidConfigurationError("prediction_length must be at least 1")
        samples.setflags(write=False)

        self._samples = samples
        self.start_date = pd.Timestamp(start_date)
        self.freq = Frequency.parse(freq)
        self.prediction_length = samples.shape[1]
        self.item_id = item_id
        self.info = info

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def num_samples(self) -> int:
        return self._samples.shape[0]

    @property
    def mean(self) -> np.ndarray:
        return np.mean(self._samples, axis=0)

    def quantile(self, q: float | str) -> np.ndarray:
        level = _check_quantile(q)
        ordered = np.sort(self._samples, axis=0)
        position = level * (self.num_samples - 1)
        lower = int(np.floor(position))
        upper = min(lower + 1, self.num_samples - 1)
        fraction = position - lower
        if fraction == 0.0:
            return ordered[lower].copy()
        low, high = ordered[lower], ordered[upper]
        # interpolate between the bracketing order statistics, kept inside them
        return np.clip(low + (high - low) * fraction, low, high)

    def dim(self) -> int:
        """Number of variates (1 for univariate samples)."""
        return 1 if self._samples.ndim == 2 else self._samples.shape[2]

    def copy_dim(self, dim: int) -> "SampleForecast":
        """Univariate forecast of a single variate."""
        if self._samples.ndim == 2:
            if dim != 0:
                raise IndexError(f"univariate forecast has no dimension {dim}")
            samples = self._samples
        else:
            samples = self._samples[:, :, dim]
        return SampleForecast(samples, self.start_date, self.freq, self.item_id, self.info)

    def __repr__(self) -> str:
        return (
            f"SampleForecast(num_samples={self.num_samples}, "
            f"prediction_length={self.prediction_length}, start_date={self.start_date}, "
            f"freq={self.freq}, item_id={self.item_id!r})"
        )


class DistributionForecast(Forecast):
    """Forecast represented by a parametric ``torch`` distribution.

    The distribution's batch shape must start with the prediction length,
    i.e. one (possibly multivariate) marginal per horizon step.

    Quantiles come from the inverse CDF. Distributions without one (StudentT,
    Gamma, NegativeBinomial...) fall back to ``num_fallback_samples`` draws
    with a fixed seed and the order statistics of ``SampleForecast``, so
    repeated calls agree and quantiles stay monotone in the level. ``mean``
    and ``stddev`` fall back the same way when torch does not provide them.

    Args:
        distribution: torch distribution with batch shape (prediction_length, ...)
        start_date: Timestamp of the first forecast step
        freq: Frequency of the series
        item_id: Optional identifier of the series
        info: Optional extra information
        num_fallback_samples: Draws used when a statistic has no closed form

    Examples:
        >>> dist = torch.distributions.Normal(torch.zeros(12), torch.ones(12))
        >>> DistributionForecast(dist, "1959-01", "M").quantile(0.5)[:3]
        array([0., 0., 0.], dtype=float32)
    """

    fallback_seed = 0

    def __init__(
        self,
        distribution: torch.distributions.Distribution,
        start_date: pd.Timestamp | str,
        freq: str | Frequency,
        item_id: Any = None,
        info: dict[str, Any] | None = None,
        num_fallback_samples: int = 10_000,
    ):
        batch_shape = distribution.batch_shape
        if len(batch_shape) < 1 or batch_shape[0] < 1:
            raise InvalidConfigurationError(
                f"distribution batch shape must start with prediction_length >= 1, got {tuple(batch_shape)}"
            )
        if num_fallback_samples < 1:
            raise InvalidConfigurationError(
                f"num_fallback_samples must be at least 1, got {num_fallback_samples}"
            )
        self.distribution = distribution
        self.start_date = pd.Timestamp(start_date)
        self.freq = Frequency.parse(freq)
        self.prediction_length = int(batch_shape[0])
        self.item_id = item_id
        self.info = info
        self.num_fallback_samples = num_fallback_samples

    def _fallback(self) -> SampleForecast:
        return self.to_sample_forecast(self.num_fallback_samples, seed=self.fallback_seed)

    @property
    def mean(self) -> np.ndarray:
        try:
            return self.distribution.mean.detach().cpu().numpy()
        except NotImplementedError:
            return self._fallback().mean

    @property
    def stddev(self) -> np.ndarray:
        try:
            return self.distribution.stddev.detach().cpu().numpy()
        except NotImplementedError:
            return np.std(self._fallback().samples, axis=0)

    def quantile(self, q: float | str) -> np.ndarray:
        level = _check_quantile(q)
        shape = self.distribution.batch_shape + self.distribution.event_shape
        value = torch.full(shape, level)
        try:
            return self.distribution.icdf(value).detach().cpu().numpy()
        except NotImplementedError:
            return self._fallback().quantile(level)

    def to_sample_forecast(self, num_samples: int = 200, seed: int | None = None) -> SampleForecast:
        """Draw ``num_samples`` trajectories from the distribution."""
        if num_samples < 1:
            raise InvalidConfigurationError(f"num_samples must be at least 1, got {num_samples}")
        generator_state = None
        if seed is not None:
            generator_state = torch.random.get_rng_state()
            torch.manual_seed(seed)
        try:
            samples = self.distribution.sample((num_samples,))
        finally:
            if generator_state is not None:
                torch.random.set_rng_state(generator_state)
        return SampleForecast(
            samples.detach().cpu().numpy(), self.start_date, self.freq, self.item_id, self.info
        )

    def __repr__(self) -> str:
        return (
            f"DistributionForecast(distribution={self.distribution}, "
            f"prediction_length={self.prediction_length}, start_date={self.start_date}, "
            f"freq={self.freq}, item_id={self.item_id!r})"
        )
