"""
confstats.loader — Dataset loading boundary.

Maps a dataset name to its CSV file under a data directory and parses it
into a list of row dicts (column name → cell string).

Design contract:
    - load_dataset() is the ONLY function that maps a dataset name to a
      filesystem path.
    - No fallback behavior. A missing file raises DatasetNotFoundError,
      a malformed file raises DatasetParseError. Neither is turned into
      an empty dataset.
    - Blank lines are skipped. Any row whose field count differs from
      the header is a parse error; all such rows are reported together.
    - Loaded rows are plain dicts and are never mutated afterwards.
"""

from __future__ import annotations

import asyncio
import csv
import logging
from collections.abc import Callable
from pathlib import Path

from confstats.constants import DATASET_TO_FILENAME

logger = logging.getLogger("confstats.loader")

Row = dict[str, str]

MAX_REPORTED_PARSE_ERRORS = 20

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UnknownDatasetError(KeyError):
    """Raised when a dataset name is not in DATASET_TO_FILENAME."""

    def __init__(self, dataset: str) -> None:
        self.dataset = dataset
        super().__init__(dataset)

    def __str__(self) -> str:
        return f"Unknown dataset: '{self.dataset}'"


class DatasetNotFoundError(Exception):
    """Raised when the CSV file behind a known dataset does not exist."""

    def __init__(self, dataset: str, filename: str, detail: str) -> None:
        self.dataset = dataset
        self.filename = filename
        self.detail = detail
        super().__init__(detail)


class DatasetParseError(Exception):
    """Raised when a dataset file cannot be decoded or tokenised.

    ``details`` is a list of ``{"row": int | None, "error": str}`` dicts;
    row numbers are 1-based data rows (the header is row 0).
    """

    def __init__(self, dataset: str, filename: str, details: list[dict]) -> None:
        self.dataset = dataset
        self.filename = filename
        self.details = details
        super().__init__(
            f"Failed to parse {filename}: {len(details)} error(s), "
            f"first: {details[0]['error'] if details else 'unknown'}"
        )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def dataset_path(dataset: str, data_dir: Path) -> Path:
    """Resolve a dataset name to its CSV path under ``data_dir``.

    Raises:
        UnknownDatasetError: if the name is not registered.
    """
    filename = DATASET_TO_FILENAME.get(dataset)
    if filename is None:
        raise UnknownDatasetError(dataset)
    return Path(data_dir) / filename


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _parse(dataset: str, path: Path) -> list[Row]:
    rows: list[Row] = []
    errors: list[dict] = []
    try:
        with open(path, encoding="utf-8-sig", newline="") as fh:
            reader = csv.DictReader(fh, restkey=None, restval=None)
            header = reader.fieldnames or []
            for index, raw in enumerate(reader, start=1):
                if None in raw:
                    errors.append({
                        "row": index,
                        "error": f"Too many fields: expected {len(header)}",
                    })
                    continue
                values = list(raw.values())
                if all(v is None or not v.strip() for v in values):
                    continue
                if any(v is None for v in values):
                    errors.append({
                        "row": index,
                        "error": f"Too few fields: expected {len(header)}",
                    })
                    continue
                rows.append(raw)
    except UnicodeDecodeError as exc:
        errors.append({"row": None, "error": f"Invalid UTF-8: {exc.reason}"})
    except csv.Error as exc:
        errors.append({"row": None, "error": str(exc)})

    if errors:
        raise DatasetParseError(dataset, path.name, errors[:MAX_REPORTED_PARSE_ERRORS])
    return rows


def load_dataset(dataset: str, data_dir: Path) -> list[Row]:
    """Load one dataset as a list of row dicts.

    Raises:
        UnknownDatasetError: unregistered dataset name.
        DatasetNotFoundError: the CSV file is missing.
        DatasetParseError: the CSV file is malformed.
    """
    path = dataset_path(dataset, data_dir)
    if not path.is_file():
        raise DatasetNotFoundError(
            dataset=dataset,
            filename=path.name,
            detail=f"Dataset file not found: {path.name} (dataset '{dataset}')",
        )
    rows = _parse(dataset, path)
    logger.info("Loaded dataset %s: %d rows from %s", dataset, len(rows), path.name)
    return rows


async def load_datasets(
    data_dir: Path,
    *datasets: str,
    loader: Callable[[str, Path], list[Row]] = load_dataset,
) -> dict[str, list[Row]]:
    """Load several datasets concurrently, one worker thread per file.

    ``loader`` defaults to ``load_dataset``; the service passes its
    cache lookup, which has the same signature. The first failure
    propagates; datasets are independent files so no partial state is
    shared between them.
    """
    results = await asyncio.gather(
        *(asyncio.to_thread(loader, name, data_dir) for name in datasets)
    )
    return dict(zip(datasets, results))
