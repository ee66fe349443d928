# scraper/storage.py
import threading
from pathlib import Path

import pandas as pd

from .models import CSV_COLUMNS
from utils.logger import get_logger

logger = get_logger("storage")


class StorageError(Exception):
    pass


class CSVStorage:
    """Append-only CSV sink for harvested reviews."""

    def __init__(self):
        self._lock = threading.Lock()

    def save_reviews(self, reviews, output_path):
        """
        Append a batch of reviews to a CSV file.

        One batch is written while holding the storage lock, so concurrent
        callers never interleave rows. The header row is written only when
        the file does not exist yet; later batches (and later runs against
        the same file) append data rows only.

        Args:
            reviews (list[Review]): Batch to persist, in order
            output_path (str | Path): Destination file; parent directories
                are created as needed

        Returns:
            int: Number of rows written

        Raises:
            StorageError: If the directory or file cannot be written
        """
        if not reviews:
            return 0
        path = Path(output_path)
        frame = pd.DataFrame([r.to_row() for r in reviews], columns=CSV_COLUMNS)

        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                write_header = not path.exists()
                frame.to_csv(path, mode="a", header=write_header, index=False)
            except OSError as e:
                raise StorageError(f"failed to write {path}: {e}") from e

        logger.debug(f"Wrote {len(frame)} rows to {path} (header={write_header})")
        return len(frame)
