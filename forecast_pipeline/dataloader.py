"""Batching of windowed instances into ``torch`` tensors."""

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
import torch
from torch.utils.data import DataLoader, Dataset, IterableDataset, get_worker_info

from forecast_pipeline.config import PipelineConfig
from forecast_pipeline.exceptions import InvalidConfigurationError
from forecast_pipeline.fields import FieldName
from forecast_pipeline.record import TimeSeriesRecord
from forecast_pipeline.transformation import create_transformation
from forecast_pipeline.transforms import TransformChain

logger = logging.getLogger(__name__)


def _to_tensor(arrays: list[np.ndarray]) -> torch.Tensor:
    stacked = np.stack(arrays)
    if np.issubdtype(stacked.dtype, np.floating):
        stacked = stacked.astype(np.float32)
    return torch.from_numpy(np.ascontiguousarray(stacked))


def collate_fn(batch: list[TimeSeriesRecord]) -> dict[str, Any]:
    """Stack the fields of windowed instances into batched tensors.

    Every instance comes out of the same chain, so all of them carry the same
    fields with the same shapes.

    Args:
        batch: Instances produced by ``InstanceSplit``

    Returns:
        Dictionary with:
        - one tensor of shape (batch, ...) per field (float32 for real values)
        - item_id: list of series identifiers
        - forecast_start: list of timestamps of the first predicted step
        - freq: list of frequency strings

    Examples:
        >>> batch = collate_fn(instances)
        >>> batch["past_target"].shape
        torch.Size([4, 24])
    """
    if not batch:
        raise InvalidConfigurationError("cannot collate an empty batch")

    names = batch[0].keys()
    result: dict[str, Any] = {}
    for name in names:
        arrays = [np.asarray(instance.require(name, transform="collate_fn")) for instance in batch]
        shapes = {array.shape for array in arrays}
        if len(shapes) != 1:
            raise InvalidConfigurationError(
                f"field '{name}' has inconsistent shapes across the batch: {sorted(shapes)}",
                transform="collate_fn",
                field=name,
            )
        result[name] = _to_tensor(arrays)

    result[FieldName.ITEM_ID] = [instance.item_id for instance in batch]
    result[FieldName.FORECAST_START] = [
        instance.metadata.get(FieldName.FORECAST_START) for instance in batch
    ]
    result["freq"] = [str(instance.freq) for instance in batch]
    return result


class TrainingInstanceDataset(IterableDataset):
    """Streams training instances drawn from a fixed list of series.

    Each iteration is one pass over the series; every series contributes as
    many instances as the training sampler draws for it (possibly none).
    Each worker owns its own random generator, seeded from ``seed``, the
    worker id and the pass number, and handles a disjoint share of series.

    Args:
        records: Series to draw instances from
        transformation: Training chain ending with ``InstanceSplit``
        seed: Base seed (None draws fresh entropy)
        shuffle: Visit the series in random order

    Examples:
        >>> dataset = TrainingInstanceDataset(records, create_transformation(config, is_train=True))
        >>> instance = next(iter(dataset))
    """

    def __init__(
        self,
        records: Sequence[TimeSeriesRecord],
        transformation: TransformChain,
        seed: int | None = None,
        shuffle: bool = True,
    ):
        super().__init__()
        self.records = list(records)
        self.transformation = transformation
        self.seed = seed
        self.shuffle = shuffle
        self._epoch = 0

    def _generator(self, worker_seed: int) -> np.random.Generator:
        if self.seed is None:
            return np.random.default_rng()
        return np.random.default_rng([self.seed, worker_seed])

    def __iter__(self):
        worker_info = get_worker_info()
        worker_id = worker_info.id if worker_info is not None else 0
        num_workers = worker_info.num_workers if worker_info is not None else 1

        # in worker processes torch draws a fresh per-worker seed every pass
        worker_seed = worker_info.seed if worker_info is not None else self._epoch
        rng = self._generator(worker_seed)
        self._epoch += 1

        indices = np.arange(worker_id, len(self.records), num_workers)
        if self.shuffle:
            rng.shuffle(indices)

        for idx in indices:
            record = self.records[idx].copy()
            yield from self.transformation.apply(record, rng=rng)


class PredictionInstanceDataset(Dataset):
    """One instance per series, windowed at the end of its history.

    Args:
        records: Series to forecast
        transformation: Prediction chain ending with ``InstanceSplit``
    """

    def __init__(self, records: Sequence[TimeSeriesRecord], transformation: TransformChain):
        self.records = list(records)
        self.transformation = transformation

    def __len__(self) -> int:
        """Return number of series."""
        return len(self.records)

    def __getitem__(self, idx: int) -> TimeSeriesRecord:
        """Get the prediction instance of a series.

        Args:
            idx: Index of the series

        Returns:
            The windowed instance
        """
        instances = self.transformation.apply(self.records[idx].copy())
        if len(instances) != 1:
            raise InvalidConfigurationError(
                f"prediction chain produced {len(instances)} instances for series "
                f"{self.records[idx].item_id}, expected exactly 1"
            )
        return instances[0]


def create_train_dataloader(
    records: Sequence[TimeSeriesRecord],
    config: PipelineConfig,
    batch_size: int = 32,
    num_workers: int = 0,
    shuffle: bool = True,
) -> DataLoader:
    """Create training dataloader.

    Args:
        records: Training series
        config: Pipeline configuration
        batch_size: Batch size
        num_workers: Number of workers for data loading
        shuffle: Visit the series in random order each pass

    Returns:
        DataLoader yielding batches from ``collate_fn``

    Examples:
        >>> train_loader = create_train_dataloader(records, config, batch_size=32)
        >>> for batch in train_loader:
        ...     print(batch["past_target"].shape)
        ...     break
    """
    transformation = create_transformation(config, is_train=True)
    dataset = TrainingInstanceDataset(
        records, transformation, seed=config.seed, shuffle=shuffle
    )
    generator = None
    if config.seed is not None:
        generator = torch.Generator()
        generator.manual_seed(config.seed)
    logger.info(
        f"Created training dataset over {len(dataset.records)} series "
        f"({config.train_sampler_kind} sampler, num_instances={config.num_instances})"
    )
    return DataLoader(
        dataset,
        batch_size=batch_size,
        num_workers=num_workers,
        collate_fn=collate_fn,
        pin_memory=torch.cuda.is_available(),
        generator=generator,
    )


def create_prediction_dataloader(
    records: Sequence[TimeSeriesRecord],
    config: PipelineConfig,
    batch_size: int = 32,
    num_workers: int = 0,
) -> DataLoader:
    """Create prediction dataloader (one instance per series, input order kept).

    Args:
        records: Series to forecast
        config: Pipeline configuration
        batch_size: Batch size
        num_workers: Number of workers for data loading

    Returns:
        DataLoader yielding batches from ``collate_fn``
    """
    transformation = create_transformation(config, is_train=False)
    dataset = PredictionInstanceDataset(records, transformation)
    logger.info(f"Created prediction dataset with {len(dataset)} series")
    return DataLoader(
        dataset,
        batch_size=batch_size,
        shuffle=False,
        num_workers=num_workers,
        collate_fn=collate_fn,
        pin_memory=torch.cuda.is_available(),
    )
