"""Configuration of the preprocessing chain and of the instance samplers."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from forecast_pipeline.exceptions import InvalidConfigurationError
from forecast_pipeline.utils import Frequency

logger = logging.getLogger(__name__)

TRAIN_SAMPLER_KINDS = ("uniform", "expected")

# Accepted spellings besides the field names themselves
_ALIASES = {
    "contextLength": "context_length",
    "predictionLength": "prediction_length",
    "frequency": "freq",
    "useFeatDynamicReal": "use_feat_dynamic_real",
    "useFeatStaticCat": "use_feat_static_cat",
    "useFeatStaticReal": "use_feat_static_real",
    "useAgeFeature": "use_age_feature",
    "numInstances": "num_instances",
    "trainSamplerKind": "train_sampler_kind",
    "padValue": "pad_value",
    "allowPadding": "allow_padding",
}


@dataclass(frozen=True)
class PipelineConfig:
    """Options the transformation chain and samplers are built from.

    Attributes:
        context_length: Window length fed to the model
        prediction_length: Horizon length
        freq: Calendar step descriptor (e.g. 'M', 'H', '15T')
        use_feat_dynamic_real: Stack caller-provided dynamic real features
        use_feat_static_cat: Keep caller-provided static categorical features
        use_feat_static_real: Keep caller-provided static real features
        use_age_feature: Add the age channel to the time features
        num_instances: Windows per series for training (expected count for 'expected')
        train_sampler_kind: 'uniform' or 'expected'
        pad_value: Value left-padding short histories
        allow_padding: Pad short histories at prediction time instead of failing
        seed: Seed of the training sampler (None draws fresh entropy); the training
            loader derives one generator per worker and pass from it, while
            applying the chain without an ``rng`` reseeds on every record
        lags_max: Upper bound for lag generation (defaults to the context length)
    """

    context_length: int
    prediction_length: int
    freq: str
    use_feat_dynamic_real: bool = False
    use_feat_static_cat: bool = False
    use_feat_static_real: bool = False
    use_age_feature: bool = True
    num_instances: float = 1.0
    train_sampler_kind: str = "uniform"
    pad_value: float = 0.0
    allow_padding: bool = True
    seed: int | None = None
    lags_max: int | None = None

    def __post_init__(self):
        if int(self.context_length) <= 0:
            raise InvalidConfigurationError(
                f"context_length must be positive, got {self.context_length}"
            )
        if int(self.prediction_length) <= 0:
            raise InvalidConfigurationError(
                f"prediction_length must be positive, got {self.prediction_length}"
            )
        try:
            Frequency.parse(str(self.freq))
        except ValueError as e:
            raise InvalidConfigurationError(f"invalid freq: {e}") from e
        if self.num_instances <= 0:
            raise InvalidConfigurationError(
                f"num_instances must be positive, got {self.num_instances}"
            )
        if self.train_sampler_kind == "uniform" and self.num_instances != int(self.num_instances):
            raise InvalidConfigurationError(
                f"uniform sampler needs an integer num_instances, got {self.num_instances}"
            )
        if self.train_sampler_kind not in TRAIN_SAMPLER_KINDS:
            raise InvalidConfigurationError(
                f"train_sampler_kind must be one of {TRAIN_SAMPLER_KINDS}, "
                f"got {self.train_sampler_kind!r}"
            )
        if self.lags_max is not None and self.lags_max < 1:
            raise InvalidConfigurationError(f"lags_max must be positive, got {self.lags_max}")

    @property
    def frequency(self) -> Frequency:
        return Frequency.parse(self.freq)

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> PipelineConfig:
        """Build a config from a dictionary, ignoring unrecognized keys.

        Raises:
            InvalidConfigurationError: If a required option is missing or invalid
        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                logger.debug(f"Ignoring unrecognized configuration option: {key}")

        required = [
            f.name
            for f in dataclasses.fields(cls)
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
        ]
        missing = [name for name in required if name not in kwargs]
        if missing:
            raise InvalidConfigurationError(f"missing required configuration options: {missing}")

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> PipelineConfig:
        """Load a config from a YAML file."""
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            options = yaml.safe_load(f) or {}
        if not isinstance(options, dict):
            raise InvalidConfigurationError(f"Config file {config_path} must contain a mapping")
        return cls.from_dict(options)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
