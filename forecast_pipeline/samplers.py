"""Sampling strategies choosing where a series is split into context and target."""

import logging
from abc import ABC, abstractmethod

import numpy as np

from forecast_pipeline.exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)


class InstanceSampler(ABC):
    """Picks split indices for a series.

    A split index ``i`` separates the context window ``[i - context_length, i)``
    from the prediction window ``[i, i + prediction_length)``.

    Randomized samplers never share a generator between calls unless the caller
    passes one: ``sample`` uses the ``rng`` argument when given, otherwise a
    fresh generator seeded with ``seed`` (fresh entropy when ``seed`` is None).
    With ``seed`` set and no ``rng``, every call restarts from the same state,
    so series of equal length get the same split indices on every call.
    Callers wanting different windows across series and passes thread one
    generator through ``TransformChain.apply(record, rng=...)``, as
    ``TrainingInstanceDataset`` does.
    """

    def __init__(self, seed: int | None = None):
        self.seed = seed

    def _generator(self, rng: np.random.Generator | None) -> np.random.Generator:
        return rng if rng is not None else np.random.default_rng(self.seed)

    @staticmethod
    def _check_lengths(series_length: int, context_length: int, prediction_length: int) -> None:
        if series_length < 0:
            raise InvalidConfigurationError(f"series_length must be non-negative, got {series_length}")
        if context_length <= 0:
            raise InvalidConfigurationError(f"context_length must be positive, got {context_length}")
        if prediction_length <= 0:
            raise InvalidConfigurationError(f"prediction_length must be positive, got {prediction_length}")

    @abstractmethod
    def sample(
        self,
        series_length: int,
        context_length: int,
        prediction_length: int,
        rng: np.random.Generator | None = None,
    ) -> list[int]:
        """Return the ordered split indices for a series of ``series_length`` steps."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed={self.seed})"


class TrainingSplitSampler(InstanceSampler):
    """Random split points for training.

    Draws ``num_instances`` indices uniformly (with replacement) from
    ``[context_length, series_length - prediction_length]``. A series too
    short to hold a single full window yields no instances.

    Args:
        num_instances: Number of windows drawn per series (default: 1)
        seed: Seed of the per-call generator when no ``rng`` is passed

    Examples:
        >>> sampler = TrainingSplitSampler(num_instances=3, seed=0)
        >>> indices = sampler.sample(100, context_length=24, prediction_length=12)
        >>> len(indices), all(24 <= i <= 88 for i in indices)
        (3, True)
        >>> sampler.sample(30, context_length=24, prediction_length=12)
        []
    """

    def __init__(self, num_instances: int = 1, seed: int | None = None):
        super().__init__(seed=seed)
        if num_instances < 1:
            raise InvalidConfigurationError(f"num_instances must be at least 1, got {num_instances}")
        self.num_instances = int(num_instances)

    def sample(
        self,
        series_length: int,
        context_length: int,
        prediction_length: int,
        rng: np.random.Generator | None = None,
    ) -> list[int]:
        self._check_lengths(series_length, context_length, prediction_length)
        low = context_length
        high = series_length - prediction_length
        if high < low:
            logger.debug(
                f"Series of length {series_length} too short for "
                f"context={context_length} + prediction={prediction_length}"
            )
            return []

        generator = self._generator(rng)
        indices = generator.integers(low, high + 1, size=self.num_instances)
        return sorted(int(i) for i in indices)


class ExpectedNumInstanceSampler(InstanceSampler):
    """Keeps every valid split index with probability ``num_instances / num_valid``.

    The expected number of instances per series equals ``num_instances``
    (capped at the number of valid indices); long series are not
    over-represented as they would be with exhaustive windowing.

    Args:
        num_instances: Expected number of windows per series
        seed: Seed of the per-call generator when no ``rng`` is passed
    """

    def __init__(self, num_instances: float = 1.0, seed: int | None = None):
        super().__init__(seed=seed)
        if num_instances <= 0:
            raise InvalidConfigurationError(f"num_instances must be positive, got {num_instances}")
        self.num_instances = float(num_instances)

    def sample(
        self,
        series_length: int,
        context_length: int,
        prediction_length: int,
        rng: np.random.Generator | None = None,
    ) -> list[int]:
        self._check_lengths(series_length, context_length, prediction_length)
        low = context_length
        high = series_length - prediction_length
        if high < low:
            return []

        candidates = np.arange(low, high + 1)
        prob = min(1.0, self.num_instances / len(candidates))
        generator = self._generator(rng)
        keep = generator.random(len(candidates)) < prob
        return [int(i) for i in candidates[keep]]


class PredictionSplitSampler(InstanceSampler):
    """Single deterministic split at the end of the observed history.

    With ``holdout=False`` (inference) the split is at ``series_length``, the
    boundary between observed history and the unknown future. With
    ``holdout=True`` (validation) the last ``prediction_length`` observations
    are held out and the split is at ``series_length - prediction_length``.

    Examples:
        >>> PredictionSplitSampler().sample(120, context_length=24, prediction_length=12)
        [120]
        >>> PredictionSplitSampler(holdout=True).sample(120, 24, 12)
        [108]
    """

    def __init__(self, holdout: bool = False):
        super().__init__(seed=None)
        self.holdout = holdout

    def sample(
        self,
        series_length: int,
        context_length: int,
        prediction_length: int,
        rng: np.random.Generator | None = None,
    ) -> list[int]:
        self._check_lengths(series_length, context_length, prediction_length)
        if not self.holdout:
            return [series_length]
        split = series_length - prediction_length
        if split < 1:
            return []
        return [split]

    def __repr__(self) -> str:
        return f"PredictionSplitSampler(holdout={self.holdout})"


class ValidationSplitSampler(PredictionSplitSampler):
    """Prediction sampler holding out the last horizon for evaluation."""

    def __init__(self):
        super().__init__(holdout=True)


class SequentialSplitSampler(InstanceSampler):
    """Rolling evaluation windows without overlap between target windows.

    Splits start at ``context_length`` and advance by ``prediction_length``
    while a full prediction window still fits in the series.

    Examples:
        >>> SequentialSplitSampler().sample(200, context_length=64, prediction_length=16)
        [64, 80, 96, 112, 128, 144, 160, 176]
    """

    def __init__(self):
        super().__init__(seed=None)

    def sample(
        self,
        series_length: int,
        context_length: int,
        prediction_length: int,
        rng: np.random.Generator | None = None,
    ) -> list[int]:
        self._check_lengths(series_length, context_length, prediction_length)
        last = series_length - prediction_length
        return list(range(context_length, last + 1, prediction_length))


_SAMPLERS = {
    "uniform": TrainingSplitSampler,
    "expected": ExpectedNumInstanceSampler,
    "prediction": PredictionSplitSampler,
    "validation": ValidationSplitSampler,
    "sequential": SequentialSplitSampler,
}


def create_sampler(kind: str, **kwargs) -> InstanceSampler:
    """Build a sampler from its registered name.

    Args:
        kind: One of 'uniform', 'expected', 'prediction', 'validation', 'sequential'
        **kwargs: Constructor arguments of the chosen sampler

    Examples:
        >>> create_sampler("uniform", num_instances=4, seed=1)
        TrainingSplitSampler(seed=1)
    """
    try:
        sampler_cls = _SAMPLERS[kind]
    except KeyError:
        raise InvalidConfigurationError(
            f"Unknown sampler kind '{kind}', expected one of {sorted(_SAMPLERS)}"
        ) from None
    return sampler_cls(**kwargs)
