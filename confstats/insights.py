"""
confstats.insights — Collaboration and committee-dynamics views.

    top_country_pairs        weighted country pairs in multi-country papers
    collaboration_evolution  per-year counts for the leading pairs
    committee_turnover       newcomers vs returning members, tenure, veterans

Pair weighting: a paper listing m ≥ 2 distinct countries has
m(m−1)/2 unordered pairs, each receiving 1 / number_of_pairs, so every
multi-country paper contributes exactly 1 in total. A pair's share is
its weight over the number of multi-country papers.

Turnover identity: a person is the case-insensitive, whitespace-trimmed
``name`` column. A person serving on several committees in one year is
counted once for that year.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations
from typing import Any

from confstats.aggregation import Rows, share
from confstats.normalization import ConferenceRecord, normalize_rows

TOP_PAIRS_LIMIT = 25
EVOLUTION_PAIRS = 5
TENURE_BUCKETS: tuple[int, ...] = (1, 2, 3, 4, 5, 6)
TOP_VETERANS_LIMIT = 12
PAIR_SEPARATOR = " ↔ "


@dataclass(frozen=True, slots=True)
class CountryPair:
    countries: tuple[str, str]
    weight: float
    share: float

    @property
    def label(self) -> str:
        return PAIR_SEPARATOR.join(self.countries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pair": self.label,
            "countries": list(self.countries),
            "weight": self.weight,
            "share": self.share,
        }


def _pairs(record: ConferenceRecord) -> list[tuple[str, str]]:
    return [tuple(sorted(pair)) for pair in combinations(record.countries, 2)]


def top_country_pairs(rows: Rows, limit: int = TOP_PAIRS_LIMIT) -> list[CountryPair]:
    """Most frequent country pairs, highest weight first."""
    weights: dict[tuple[str, str], float] = defaultdict(float)
    multi_country = 0
    for record in normalize_rows(rows):
        pairs = _pairs(record)
        if not pairs:
            continue
        multi_country += 1
        weight = 1.0 / len(pairs)
        for pair in pairs:
            weights[pair] += weight
    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    return [
        CountryPair(pair, weight, share(weight, multi_country))
        for pair, weight in ranked[:max(0, limit)]
    ]


@dataclass(frozen=True, slots=True)
class CollaborationYear:
    year: int
    multi_country: int
    pair_counts: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, "Total Multi-Country": self.multi_country,
                **dict(self.pair_counts)}


def collaboration_evolution(
    rows: Rows,
    pairs: int = EVOLUTION_PAIRS,
) -> list[CollaborationYear]:
    """Per year: multi-country papers, and papers containing each leading pair.

    The leading pairs are the first ``pairs`` entries of top_country_pairs().
    """
    leaders = [p.countries for p in top_country_pairs(rows, limit=pairs)]
    leader_set = set(leaders)
    multi: dict[int, int] = defaultdict(int)
    counts: dict[int, dict[tuple[str, str], int]] = defaultdict(lambda: defaultdict(int))
    for record in normalize_rows(rows):
        present = set(_pairs(record))
        if not present:
            continue
        multi[record.year] += 1
        for pair in present & leader_set:
            counts[record.year][pair] += 1
    return [
        CollaborationYear(
            year=year,
            multi_country=multi[year],
            pair_counts=tuple(
                (PAIR_SEPARATOR.join(pair), counts[year].get(pair, 0)) for pair in leaders
            ),
        )
        for year in sorted(multi)
    ]


@dataclass(frozen=True, slots=True)
class TurnoverYear:
    year: int
    newcomers: int
    returning: int

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, "newcomers": self.newcomers, "returning": self.returning}


@dataclass(frozen=True, slots=True)
class Veteran:
    name: str
    years: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "count": self.years}


@dataclass(frozen=True, slots=True)
class CommitteeTurnover:
    series: tuple[TurnoverYear, ...]
    tenure: tuple[tuple[str, int], ...]
    veterans: tuple[Veteran, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "turnover": [entry.to_dict() for entry in self.series],
            "tenure": [{"label": label, "people": people} for label, people in self.tenure],
            "veterans": [veteran.to_dict() for veteran in self.veterans],
        }


def committee_turnover(rows: Rows, veterans: int = TOP_VETERANS_LIMIT) -> CommitteeTurnover:
    """Newcomer / returning split per year, tenure histogram and top veterans.

    A member is returning in year Y when they served in any conference in
    any year before Y. Tenure is the number of distinct years served;
    the last histogram bucket is "6+".
    """
    records = sorted(
        (r for r in normalize_rows(rows) if r.name),
        key=lambda r: r.year,
    )
    years_by_person: dict[str, set[int]] = defaultdict(set)
    display: dict[str, str] = {}
    for record in records:
        key = record.name.lower()
        years_by_person[key].add(record.year)
        display.setdefault(key, record.name)

    newcomers: dict[int, int] = defaultdict(int)
    returning: dict[int, int] = defaultdict(int)
    for years in years_by_person.values():
        first = min(years)
        for year in years:
            if year == first:
                newcomers[year] += 1
            else:
                returning[year] += 1
    all_years = sorted(set(newcomers) | set(returning))
    series = tuple(TurnoverYear(y, newcomers[y], returning[y]) for y in all_years)

    histogram: dict[int, int] = defaultdict(int)
    for years in years_by_person.values():
        histogram[min(len(years), TENURE_BUCKETS[-1])] += 1
    tenure = tuple(
        (f"{b}+" if b == TENURE_BUCKETS[-1] else str(b), histogram[b]) for b in TENURE_BUCKETS
    )

    ranked = sorted(
        years_by_person.items(),
        key=lambda kv: (-len(kv[1]), display[kv[0]].lower()),
    )
    top = tuple(Veteran(display[key], len(years)) for key, years in ranked[:max(0, veterans)])
    return CommitteeTurnover(series, tenure, top)
