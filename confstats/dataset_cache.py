"""
confstats.dataset_cache — Thread-safe, bounded, keyed dataset cache.

Holds parsed CSV datasets keyed by ``(data_dir, dataset)`` so that every
view computed by the API reads the same immutable row list instead of
re-parsing the file per request.

Design contract:
    - Each dataset is loaded from disk at most once per key while cached.
    - Cache is bounded by MAX_CACHED_DATASETS (default 8). The
      least-recently-used dataset is evicted when a new one exceeds it.
    - Thread-safe via threading.Lock. The lock is not held during I/O.
    - Load failures are never cached; the next call retries the file.
    - Cached rows are shared read-only. Callers must not mutate them.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any

from confstats.loader import Row, load_dataset

logger = logging.getLogger("confstats.cache")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_CACHED_DATASETS: int = int(os.getenv("MAX_CACHED_DATASETS", "8"))
"""Maximum number of datasets held in memory.
Controlled by MAX_CACHED_DATASETS env var. Default: 8."""


# ---------------------------------------------------------------------------
# DatasetCache
# ---------------------------------------------------------------------------

class DatasetCache:
    """Thread-safe, bounded, LRU cache for loaded datasets.

    Usage::

        cache = DatasetCache()
        rows = cache.get("papers", Path("data"))
    """

    def __init__(self, max_datasets: int | None = None) -> None:
        self._max: int = max_datasets if max_datasets is not None else MAX_CACHED_DATASETS
        if self._max < 1:
            raise ValueError(f"max_datasets must be >= 1, got {self._max}")
        self._lock: threading.Lock = threading.Lock()
        self._slots: OrderedDict[tuple[str, str], list[Row]] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, dataset: str, data_dir: Path) -> list[Row]:
        """Return the rows of ``dataset``, loading them on first use.

        Raises whatever load_dataset() raises; failures are not cached.

        Thread-safety:
            Two threads missing the same key may both parse the file.
            The data is deterministic, so the last writer wins harmlessly.
        """
        key = (str(Path(data_dir).resolve()), dataset)

        with self._lock:
            if key in self._slots:
                self._slots.move_to_end(key)
                self._hits += 1
                return self._slots[key]
            self._misses += 1

        rows = load_dataset(dataset, Path(data_dir))

        with self._lock:
            if key not in self._slots:
                while len(self._slots) >= self._max:
                    evicted_key, evicted_rows = self._slots.popitem(last=False)
                    logger.info(
                        "Cache eviction: %s (%d rows, max_datasets=%d)",
                        evicted_key[1], len(evicted_rows), self._max,
                    )
            self._slots[key] = rows
            self._slots.move_to_end(key)

        return rows

    def invalidate(self, dataset: str | None = None) -> int:
        """Drop cached datasets.

        Args:
            dataset: If provided, drop that dataset under every data
                directory. If None, drop everything.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if dataset is None:
                count = len(self._slots)
                self._slots.clear()
                return count
            keys = [k for k in self._slots if k[1] == dataset]
            for k in keys:
                del self._slots[k]
            return len(keys)

    @property
    def dataset_count(self) -> int:
        """Number of datasets currently cached."""
        with self._lock:
            return len(self._slots)

    @property
    def stats(self) -> dict[str, Any]:
        """Cache statistics for diagnostics."""
        with self._lock:
            return {
                "max_datasets": self._max,
                "slots_used": len(self._slots),
                "hits": self._hits,
                "misses": self._misses,
                "datasets": [
                    {"dataset": name, "rows": len(rows)}
                    for (_, name), rows in self._slots.items()
                ],
            }
