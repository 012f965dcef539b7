"""
confstats.ranking — Fractional-weight country and institution rankings.

Each row resolves to a set of distinct identities (countries, or
institution/country pairs). A row with k identities gives 1/k to each;
a row with none is counted as unmapped and gives nothing.

Two denominators are reported, and never merged:
    percent          = identity weight / Σ all identity weights * 100
    unmapped_percent = unmapped rows / ranked rows * 100

Ranks are 1-based positions after sorting by percent descending, then
by identity (case-insensitive, then exact). Filtering an institution
ranking by country keeps the full-ranking weights, percents and ranks.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Any, Iterable

from confstats.aggregation import Rows, share
from confstats.normalization import (
    ConferenceRecord,
    normalize_country_name,
    normalize_rows,
    parse_institutions,
)

KIND_COUNTRY = "country"
KIND_INSTITUTION = "institution"


@dataclass(frozen=True, slots=True)
class RankingEntry:
    identity: str
    percent: float
    weight: float
    rank: int
    country: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "identity": self.identity,
            "percent": self.percent,
            "weight": self.weight,
            "rank": self.rank,
        }
        if self.country is not None:
            data["country"] = self.country
        return data


@dataclass(frozen=True, slots=True)
class RankingSummary:
    kind: str
    entries: tuple[RankingEntry, ...]
    total_rows: int
    unmapped_count: int
    available_countries: tuple[str, ...] = ()

    @property
    def total_weight(self) -> float:
        return sum(entry.weight for entry in self.entries)

    @property
    def unmapped_percent(self) -> float:
        return share(self.unmapped_count, self.total_rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "entries": [entry.to_dict() for entry in self.entries],
            "totalRows": self.total_rows,
            "unmappedCount": self.unmapped_count,
            "unmappedPercent": self.unmapped_percent,
            "availableCountries": list(self.available_countries),
        }


def _rank(
    weights: dict[tuple[str, str | None], float],
) -> tuple[RankingEntry, ...]:
    grand_total = sum(weights.values())
    entries = [
        RankingEntry(identity=name, percent=share(weight, grand_total), weight=weight,
                     rank=0, country=country)
        for (name, country), weight in weights.items()
    ]

    def order(entry: RankingEntry) -> tuple[float, str, str, str]:
        label = entry.identity + (entry.country or "")
        return (-entry.percent, label.casefold(), label, entry.country or "")

    entries.sort(key=order)
    return tuple(replace(entry, rank=i) for i, entry in enumerate(entries, start=1))


def _tabulate(
    records: Iterable[ConferenceRecord],
    identities_of,
) -> tuple[dict[tuple[str, str | None], float], int, int]:
    weights: dict[tuple[str, str | None], float] = defaultdict(float)
    rows = 0
    unmapped = 0
    for record in records:
        rows += 1
        identities = identities_of(record)
        if not identities:
            unmapped += 1
            continue
        weight = 1.0 / len(identities)
        for identity in identities:
            weights[identity] += weight
    return weights, rows, unmapped


def compute_country_ranking(rows: Rows) -> RankingSummary:
    """Rank countries from the ``countries`` column of each row."""
    weights, total_rows, unmapped = _tabulate(
        normalize_rows(rows),
        lambda r: [(country, None) for country in r.countries],
    )
    return RankingSummary(KIND_COUNTRY, _rank(weights), total_rows, unmapped)


def compute_institution_ranking(rows: Rows) -> RankingSummary:
    """Rank institutions; each carries the country from its parenthetical."""
    weights, total_rows, unmapped = _tabulate(
        normalize_rows(rows),
        lambda r: [(token.name, token.country) for token in parse_institutions(r.institutions)],
    )
    countries = sorted({c for (_, c) in weights if c is not None}, key=lambda c: (c.casefold(), c))
    return RankingSummary(KIND_INSTITUTION, _rank(weights), total_rows, unmapped, tuple(countries))


def filter_institution_ranking(
    summary: RankingSummary,
    country: str | None = None,
    search: str | None = None,
) -> RankingSummary:
    """Narrow a ranking to one country and/or a name substring.

    Weights, percents and ranks are those of the full ranking.
    """
    entries = summary.entries
    if country:
        wanted = normalize_country_name(country)
        entries = tuple(e for e in entries if e.country == wanted)
    if search and search.strip():
        needle = search.strip().lower()
        entries = tuple(e for e in entries if needle in e.identity.lower())
    return replace(summary, entries=entries)
