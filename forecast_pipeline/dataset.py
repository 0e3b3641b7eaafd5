"""Dataset class for loading time series records from parquet files."""

import logging
import time
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import pyarrow.parquet as pq
from torch.utils.data import Dataset

from forecast_pipeline.fields import FieldName
from forecast_pipeline.record import TimeSeriesRecord

logger = logging.getLogger(__name__)

# Optional columns copied into the record when present
_FEATURE_COLUMNS = (
    FieldName.FEAT_STATIC_CAT,
    FieldName.FEAT_STATIC_REAL,
    FieldName.FEAT_DYNAMIC_CAT,
    FieldName.FEAT_DYNAMIC_REAL,
)


class RecordDataset(Dataset):
    """PyTorch Dataset of ``TimeSeriesRecord`` loaded from parquet files.

    Each parquet row holds one series following the GiftEvalPretrain schema:
    - item_id: Unique identifier for each series
    - start: Start timestamp of the series
    - freq: Frequency string (e.g., 'H', '15T', 'D'); optional if ``freq`` is given
    - target: Array of target values, shape (num_variates, length) or (length,)
    - feat_static_cat / feat_static_real / feat_dynamic_cat / feat_dynamic_real: optional

    Missing values are kept: the observed-value indicator of the chain marks
    them, so series with NaN are not discarded.

    Args:
        data_dir: Path to a parquet file or a directory containing parquet files (can have subdirs)
        min_length: Minimum length of time series to include (default: 1)
        freq: Frequency used when the files have no 'freq' column

    Examples:
        >>> dataset = RecordDataset("data/training")
        >>> record = dataset[0]
        >>> record.length >= 1
        True
    """

    def __init__(self, data_dir: str | Path, min_length: int = 1, freq: str | None = None):
        """Initialize dataset by loading all parquet files from ``data_dir``."""
        self.data_dir = Path(data_dir)
        self.min_length = min_length
        self.freq = freq
        self.records: list[TimeSeriesRecord] = []

        # Statistics for logging
        self.stats = {
            "total_processed": 0,
            "discarded_invalid": 0,
            "discarded_too_short": 0,
            "with_missing_values": 0,
        }

        logger.info(f"Loading dataset from {self.data_dir}")
        start_time = time.time()

        self._load_all_parquet_files()

        total_time = time.time() - start_time
        logger.info(f"Loaded {len(self.records)} time series from {self.data_dir} in {total_time:.2f}s")
        logger.info(f"  Total series processed: {self.stats['total_processed']}")
        logger.info(f"  Discarded (invalid target): {self.stats['discarded_invalid']}")
        logger.info(f"  Discarded (too short): {self.stats['discarded_too_short']}")
        logger.info(f"  Series with missing values: {self.stats['with_missing_values']}")

    def _load_all_parquet_files(self) -> None:
        """Load one parquet file, or recursively all parquet files of a directory."""
        if self.data_dir.is_file():
            parquet_files = [self.data_dir]
        else:
            parquet_files = sorted(self.data_dir.rglob("*.parquet"))

        if not parquet_files:
            raise ValueError(f"No parquet files found in {self.data_dir}")

        for parquet_file in parquet_files:
            self._load_parquet_file(parquet_file)

    @staticmethod
    def _process_array(values: Any) -> np.ndarray | None:
        """Convert a parquet cell to a float array of shape (length,) or (num_variates, length).

        Returns:
            Numpy array or None if the cell cannot be interpreted as a series
        """
        array = np.array(values)

        # Case 1: array of arrays (multivariate, or univariate stored as one element)
        if array.dtype == object:
            try:
                arrays = [np.array(x, dtype=np.float32) for x in array]
                array = np.stack(arrays, axis=0)
            except (ValueError, TypeError):
                return None
        if array.ndim == 2 and array.shape[0] == 1:
            array = array[0]
        if array.ndim not in (1, 2):
            return None

        return array.astype(np.float32)

    def _load_parquet_file(self, filepath: Path) -> None:
        """Load a single parquet file and add valid series to the list.

        Args:
            filepath: Path to parquet file
        """
        load_start = time.time()
        df = pq.read_table(filepath).to_pandas()
        logger.info(f"Loaded {len(df)} rows from {filepath} in {time.time() - load_start:.2f}s")

        if FieldName.TARGET not in df.columns or FieldName.START not in df.columns:
            raise ValueError(f"{filepath} must have '{FieldName.TARGET}' and '{FieldName.START}' columns")
        if "freq" not in df.columns and self.freq is None:
            raise ValueError(f"{filepath} has no 'freq' column and no default frequency was given")

        for position, (_, row) in enumerate(df.iterrows()):
            self.stats["total_processed"] += 1

            target = self._process_array(row[FieldName.TARGET])
            if target is None:
                self.stats["discarded_invalid"] += 1
                logger.warning(f"Skipping row {position} of {filepath}: invalid target")
                continue
            if target.shape[-1] < self.min_length:
                self.stats["discarded_too_short"] += 1
                continue
            if np.isnan(target).any():
                self.stats["with_missing_values"] += 1

            fields = {FieldName.TARGET: target}
            for column in _FEATURE_COLUMNS:
                if column not in df.columns or row[column] is None:
                    continue
                value = self._process_array(row[column])
                if value is None:
                    raise ValueError(f"Row {position} of {filepath} has an invalid '{column}' value")
                if column in FieldName.CATEGORICAL:
                    value = value.astype(np.int64)
                fields[column] = value

            freq = row["freq"] if "freq" in df.columns else self.freq
            item_id = row["item_id"] if "item_id" in df.columns else f"{filepath.stem}_{position}"
            metadata = {"dataset_name": row["dataset_name"]} if "dataset_name" in df.columns else {}

            self.records.append(
                TimeSeriesRecord(
                    start=pd.Timestamp(row[FieldName.START]),
                    freq=freq,
                    fields=fields,
                    item_id=item_id,
                    metadata=metadata,
                )
            )

    def __len__(self) -> int:
        """Return number of time series in dataset."""
        return len(self.records)

    def __getitem__(self, idx: int) -> TimeSeriesRecord:
        """Get a copy of a series, ready to be mutated by a chain.

        Args:
            idx: Index of the series
        """
        return self.records[idx].copy()
