"""
confstats.normalization — Canonical vocabularies and row ingestion.

Pure-computation module. Zero I/O. Zero global state.

Every raw CSV row passes through normalize_row() exactly once before any
aggregation sees it. Downstream code reads ConferenceRecord fields only,
never the raw column spellings.

Design contract:
    - All normalizers are total: unparseable input degrades to the
      empty / "Unknown" case, never raises.
    - normalize_country_name() is idempotent.
    - parse_delimited_list() never yields "Unknown" or "Other" and never
      yields the same country twice.
    - Rows with an empty conference or a year that is not a finite
      integral number are dropped (normalize_row() returns None).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from confstats.constants import (
    CONFERENCE_ALIASES,
    CONTINENT_CODES,
    COUNTRY_ALIASES,
    EXCLUDED_IDENTITIES,
    OTHER,
    OTHER_COUNTRY_VALUES,
    UNKNOWN,
    UNKNOWN_CONTINENT_VALUES,
    UNKNOWN_COUNTRY_VALUES,
)

logger = logging.getLogger("confstats.normalization")

# ---------------------------------------------------------------------------
# Column spellings seen across the unified CSV exports
# ---------------------------------------------------------------------------

CONFERENCE_COLUMNS: tuple[str, ...] = ("conference", "Conference")
YEAR_COLUMNS: tuple[str, ...] = ("year", "Year")
CONTINENT_COLUMNS: tuple[str, ...] = (
    "predominant_continent",
    "Predominant Continent",
    "continent",
    "Continent",
)
INSTITUTION_COLUMNS: tuple[str, ...] = ("institutions", "Institutions")
COUNTRY_COLUMNS: tuple[str, ...] = ("countries", "Countries", "country", "Country")
NAME_COLUMNS: tuple[str, ...] = ("name", "Name")

_WHITESPACE = re.compile(r"\s+")

# Comma fragments that continue an inverted political name,
# e.g. "Korea, Republic of" or "Congo, Democratic Republic of the".
# Any fragment ending in "of" / "of the" is one.
_CONTINUATION = re.compile(
    r"^(the|south|north|sar|"
    r".*\bof( the)?|"
    r"province of china)$",
    re.IGNORECASE,
)

_TRAILING_COUNTRY = re.compile(r"^(?P<name>.*?)\s*\((?P<country>[^()]*)\)\s*$")


# ---------------------------------------------------------------------------
# Scalar normalizers
# ---------------------------------------------------------------------------

def _collapse(value: Any) -> str:
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def normalize_conference_name(value: Any) -> str:
    """Trim, upper-case and apply CONFERENCE_ALIASES.

    Empty input returns "" and the caller drops the record.
    """
    code = _collapse(value).upper()
    if not code:
        return ""
    return CONFERENCE_ALIASES.get(code, code)


def normalize_continent(value: Any) -> str | None:
    """Map a continent spelling to its bucket label, or None."""
    return CONTINENT_CODES.get(_collapse(value).upper())


def gap_continent_bucket(value: Any) -> str:
    """Continent bucket used by committee-vs-papers views.

    Empty or literal UNKNOWN → "Unknown"; anything unrecognised → "Other".
    """
    key = _collapse(value).upper()
    if key in UNKNOWN_CONTINENT_VALUES:
        return UNKNOWN
    return CONTINENT_CODES.get(key, OTHER)


def _title_token(token: str, index: int, last: int) -> str:
    if len(token) == 1:
        return token.upper()
    if token.lower() == "of" and 0 < index < last:
        return "of"
    head = token[0].upper()
    if len(head) != 1:
        head = token[0]
    return head + token[1:].lower()


def normalize_country_name(value: Any) -> str:
    """Canonical country name, "Unknown" or "Other".

    Lookup order: unknown sentinels, other sentinels, COUNTRY_ALIASES
    (case-insensitive), then title-casing of each whitespace token.
    Title-casing can change a character's lower-case form (dotless ı),
    so the lookups run again on the title-cased name.
    """
    text = _collapse(value)
    if not text:
        return UNKNOWN
    known = _lookup_country(text.lower())
    if known is not None:
        return known
    tokens = text.split(" ")
    last = len(tokens) - 1
    titled = " ".join(_title_token(tok, i, last) for i, tok in enumerate(tokens))
    known = _lookup_country(titled.lower())
    return titled if known is None else known


def _lookup_country(key: str) -> str | None:
    if key in UNKNOWN_COUNTRY_VALUES:
        return UNKNOWN
    if key in OTHER_COUNTRY_VALUES:
        return OTHER
    return COUNTRY_ALIASES.get(key)


def extract_year(value: Any) -> int | None:
    """Parse a year cell. Returns None unless it is a finite integral number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


# ---------------------------------------------------------------------------
# Multi-valued fields
# ---------------------------------------------------------------------------

def _split_countries(text: str) -> list[str]:
    pieces: list[str] = []
    for chunk in text.split(";"):
        merged: list[str] = []
        for fragment in chunk.split(","):
            fragment = _collapse(fragment)
            if not fragment:
                continue
            if merged and (
                _CONTINUATION.match(fragment)
                or f"{merged[-1]}, {fragment}".lower() in COUNTRY_ALIASES
            ):
                merged[-1] = f"{merged[-1]}, {fragment}"
            else:
                merged.append(fragment)
        pieces.extend(merged)
    return pieces


def parse_delimited_list(value: Any) -> tuple[str, ...]:
    """Split a country field into distinct canonical country names.

    Accepts a delimited string (";" and ",") or an already list-shaped
    value. "Unknown" and "Other" are removed; order of first appearance
    is kept.
    """
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        raw = [_collapse(item) for item in value]
    else:
        raw = _split_countries(str(value))

    seen: dict[str, None] = {}
    for item in raw:
        if not item:
            continue
        name = normalize_country_name(item)
        if name in EXCLUDED_IDENTITIES:
            continue
        seen.setdefault(name, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class InstitutionToken:
    """One institution entry, with the country from its trailing parenthetical."""

    name: str
    country: str | None = None


def parse_institutions(value: Any) -> tuple[InstitutionToken, ...]:
    """Split a ";"-delimited institutions field into distinct tokens.

    "MIT (United States); ETH Zurich (Switzerland)" yields two tokens
    carrying their countries. Duplicates compare case-insensitively on
    the name together with the country.
    """
    if value is None:
        return ()
    parts = value if isinstance(value, (list, tuple)) else str(value).split(";")

    tokens: dict[tuple[str, str | None], InstitutionToken] = {}
    for part in parts:
        text = _collapse(part)
        if not text:
            continue
        country: str | None = None
        match = _TRAILING_COUNTRY.match(text)
        if match:
            text = match.group("name").strip()
            country = normalize_country_name(match.group("country"))
            if country in EXCLUDED_IDENTITIES:
                country = None
        if not text or text.lower() in UNKNOWN_COUNTRY_VALUES:
            continue
        tokens.setdefault((text.lower(), country), InstitutionToken(text, country))
    return tuple(tokens.values())


# ---------------------------------------------------------------------------
# Row ingestion
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ConferenceRecord:
    """One paper or committee row after normalization.

    ``continent`` and ``institutions`` keep the cleaned source text; the
    views decide how to bucket them. ``countries`` is already parsed.
    ``row`` is the untouched source mapping for dataset-specific columns.
    """

    conference: str
    year: int
    continent: str = ""
    institutions: str = ""
    countries: tuple[str, ...] = ()
    name: str = ""
    row: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


def first_value(row: Mapping[str, Any], columns: Sequence[str]) -> Any:
    """Value of the first column that holds something other than blank."""
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def normalize_row(row: Mapping[str, Any]) -> ConferenceRecord | None:
    """Build a ConferenceRecord, or None when the row must be skipped."""
    conference = normalize_conference_name(first_value(row, CONFERENCE_COLUMNS))
    if not conference:
        return None
    year = extract_year(first_value(row, YEAR_COLUMNS))
    if year is None:
        return None
    return ConferenceRecord(
        conference=conference,
        year=year,
        continent=_collapse(first_value(row, CONTINENT_COLUMNS)),
        institutions=_collapse(first_value(row, INSTITUTION_COLUMNS)),
        countries=parse_delimited_list(first_value(row, COUNTRY_COLUMNS)),
        name=_collapse(first_value(row, NAME_COLUMNS)),
        row=row,
    )


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> list[ConferenceRecord]:
    """Normalize every row, dropping the ones normalize_row() rejects."""
    records: list[ConferenceRecord] = []
    skipped = 0
    for row in rows:
        record = normalize_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        logger.debug("Skipped %d of %d rows (empty conference or bad year)",
                     skipped, skipped + len(records))
    return records
