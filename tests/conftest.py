"""
tests/conftest.py — Shared CSV fixtures.

Builds a small but complete data directory under tmp_path: two
conferences, two years, paper and committee rows in both the continent
and the country variants.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Callable

import pytest

from confstats.constants import DATASET_TO_FILENAME

PAPERS = [
    {"conference": "OSDI", "year": "2020", "predominant_continent": "NA",
     "institutions": "Google; MIT"},
    {"conference": "OSDI", "year": "2020", "predominant_continent": "EU",
     "institutions": "ETH Zurich"},
    {"conference": "NSDI", "year": "2021", "predominant_continent": "AS",
     "institutions": "Huawei; Tsinghua University"},
    {"conference": "NSDI", "year": "2021", "predominant_continent": "NA",
     "institutions": ""},
]

COMMITTEE = [
    {"conference": "OSDI", "year": "2020", "continent": "AS", "name": "Alice Smith"},
    {"conference": "NSDI", "year": "2021", "continent": "NA", "name": "Bob Jones"},
    {"conference": "NSDI", "year": "2021", "continent": "EU", "name": "alice smith"},
]

PAPERS_COUNTRY = [
    {"conference": "OSDI", "year": "2020", "countries": "France; Germany",
     "institutions": "INRIA (France); TU Munich (Germany)"},
    {"conference": "OSDI", "year": "2020", "countries": "France",
     "institutions": "INRIA (France)"},
    {"conference": "NSDI", "year": "2021", "countries": "",
     "institutions": ""},
]

COMMITTEE_COUNTRY = [
    {"conference": "OSDI", "year": "2020", "countries": "Germany"},
    {"conference": "NSDI", "year": "2021", "countries": "USA"},
]


def write_rows(path: Path, rows: list[dict[str, str]]) -> Path:
    """Write ``rows`` as a CSV file with a header taken from the first row."""
    with open(path, "w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture()
def write_dataset(tmp_path: Path) -> Callable[[str, list[dict[str, str]]], Path]:
    """Write one dataset's CSV into tmp_path under its registered filename."""

    def _write(dataset: str, rows: list[dict[str, str]]) -> Path:
        return write_rows(tmp_path / DATASET_TO_FILENAME[dataset], rows)

    return _write


@pytest.fixture()
def data_dir(tmp_path: Path, write_dataset) -> Path:
    """A data directory holding the four core view datasets."""
    write_dataset("papers", PAPERS)
    write_dataset("committee", COMMITTEE)
    write_dataset("papers-country", PAPERS_COUNTRY)
    write_dataset("committee-country", COMMITTEE_COUNTRY)
    return tmp_path
