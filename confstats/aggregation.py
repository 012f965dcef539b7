"""
confstats.aggregation — Group-count-percentage engine and per-view reducers.

Pure-computation module. Zero I/O. Every public function takes raw rows
(mappings from column name to cell), normalizes each row exactly once and
returns a list of frozen result items.

Design contract:
    - One generic reducer, tally(), owns grouping, fractional weights and
      the "total includes unresolved rows" policy. Views only choose the
      grouping key and the category extractor.
    - share() owns the zero-denominator guard and rounding. No view
      divides by a total itself.
    - Output order is deterministic: year ascending, then conference
      ascending, unless a view documents otherwise.
    - Malformed rows (empty conference, bad year) never reach a view;
      see confstats.normalization.normalize_row().

Denominator semantics differ on purpose between views:
    continent distribution  → every row of the (conference, year) key
    Asian trend             → only rows whose continent is recognised
    Big Tech vs academia    → every row; unmapped is reported, not dropped
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, Mapping, Sequence

from confstats.classification import (
    STATUS_ACADEMIA,
    STATUS_BIG_TECH,
    classify_affiliation,
    rebalance_regional_shares,
    region_weights,
)
from confstats.constants import (
    ASIA,
    DISTRIBUTION_BUCKETS,
    EUROPE,
    NORTH_AMERICA,
    OTHERS,
    REGION_BUCKETS,
    ROUND_PRECISION,
)
from confstats.normalization import (
    ConferenceRecord,
    extract_year,
    first_value,
    normalize_conference_name,
    normalize_continent,
    normalize_rows,
)

Rows = Sequence[Mapping[str, Any]]
YearRange = tuple[int | None, int | None]

# ---------------------------------------------------------------------------
# Generic engine
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class GroupTally:
    """Running counters for one aggregation key."""

    counts: defaultdict[str, float] = field(default_factory=lambda: defaultdict(float))
    total: float = 0.0


def share(count: float, total: float, precision: int = ROUND_PRECISION) -> float:
    """count / total * 100, rounded. A non-positive total yields 0.0."""
    if total <= 0:
        return 0.0
    return round(count / total * 100, precision)


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def single(label: str | None) -> dict[str, float]:
    """Category extractor result for a record in exactly one bucket."""
    return {label: 1.0} if label else {}


def fractional(labels: Iterable[str]) -> dict[str, float]:
    """Spread one unit of weight evenly across distinct labels."""
    distinct = list(dict.fromkeys(labels))
    if not distinct:
        return {}
    weight = 1.0 / len(distinct)
    return {label: weight for label in distinct}


def tally(
    records: Iterable[ConferenceRecord],
    key_of: Callable[[ConferenceRecord], Hashable | None],
    categories_of: Callable[[ConferenceRecord], Mapping[str, float]],
    *,
    count_unresolved: bool = True,
) -> dict[Hashable, GroupTally]:
    """Group records and accumulate weighted category counts.

    Args:
        records: Normalized records.
        key_of: Grouping key for a record, or None to skip it.
        categories_of: Category → weight for a record. An empty mapping
            means the record's category did not resolve.
        count_unresolved: When True, unresolved records still add 1 to
            their key's total. When False they are invisible to the key.

    Returns:
        Insertion-ordered dict of key → GroupTally.
    """
    groups: dict[Hashable, GroupTally] = {}
    for record in records:
        key = key_of(record)
        if key is None:
            continue
        categories = categories_of(record)
        if not categories and not count_unresolved:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = GroupTally()
        group.total += 1
        for category, weight in categories.items():
            group.counts[category] += weight
    return groups


def by_conference_year(record: ConferenceRecord) -> tuple[str, int]:
    return (record.conference, record.year)


def by_conference(record: ConferenceRecord) -> str:
    return record.conference


def within_years(year: int, year_range: YearRange | None) -> bool:
    """True when ``year`` falls inside the inclusive [start, end] window."""
    if year_range is None:
        return True
    start, end = year_range
    if start is not None and year < start:
        return False
    if end is not None and year > end:
        return False
    return True


def _year_conference_order(key: tuple[str, int]) -> tuple[int, str]:
    return (key[1], key[0])


def to_number(value: Any) -> float:
    """Numeric cell value; blanks and garbage count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(str(value).strip())
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


# ---------------------------------------------------------------------------
# Continent distribution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ContinentDistributionItem:
    conference: str
    year: int
    north_america: int
    europe: int
    asia: int
    others: int
    total: int

    def percentages(self) -> dict[str, float]:
        counts = (self.north_america, self.europe, self.asia, self.others)
        return {
            bucket: share(count, self.total)
            for bucket, count in zip(DISTRIBUTION_BUCKETS, counts)
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "conference": self.conference,
            "year": self.year,
            NORTH_AMERICA: self.north_america,
            EUROPE: self.europe,
            ASIA: self.asia,
            OTHERS: self.others,
            "total": self.total,
            "percentages": self.percentages(),
        }


def _distribution_bucket(record: ConferenceRecord) -> dict[str, float]:
    label = normalize_continent(record.continent)
    if label in (NORTH_AMERICA, EUROPE, ASIA):
        return single(label)
    return single(OTHERS)


def process_continent_distribution(rows: Rows) -> list[ContinentDistributionItem]:
    """Per (conference, year) continent counts; ``total`` counts every row."""
    groups = tally(normalize_rows(rows), by_conference_year, _distribution_bucket)
    items = []
    for key in sorted(groups, key=_year_conference_order):
        group = groups[key]
        items.append(ContinentDistributionItem(
            conference=key[0],
            year=key[1],
            north_america=int(group.counts[NORTH_AMERICA]),
            europe=int(group.counts[EUROPE]),
            asia=int(group.counts[ASIA]),
            others=int(group.counts[OTHERS]),
            total=int(group.total),
        ))
    return items


def process_committee_continent_distribution(rows: Rows) -> list[ContinentDistributionItem]:
    """Continent distribution over committee rows (``continent`` column)."""
    return process_continent_distribution(rows)


# ---------------------------------------------------------------------------
# Asian trend
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AsianTrendItem:
    conference: str
    year: int
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"conference": self.conference, "year": self.year, "percentage": self.percentage}


def process_asian_trends(rows: Rows) -> list[AsianTrendItem]:
    """Share of Asia among rows with a recognised continent.

    Rows whose continent does not normalize are excluded from both the
    numerator and the denominator.
    """
    groups = tally(
        normalize_rows(rows),
        by_conference_year,
        lambda r: single(normalize_continent(r.continent)),
        count_unresolved=False,
    )
    return [
        AsianTrendItem(key[0], key[1], share(groups[key].counts[ASIA], groups[key].total))
        for key in sorted(groups, key=_year_conference_order)
    ]


# ---------------------------------------------------------------------------
# Big Tech vs academia
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BigTechItem:
    conference: str
    year: int
    big_tech: float
    academia: float
    unmapped: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "conference": self.conference,
            "year": self.year,
            "bigTech": self.big_tech,
            "academia": self.academia,
            "unmapped": self.unmapped,
        }


def _affiliation_status(record: ConferenceRecord) -> dict[str, float]:
    return single(classify_affiliation(record.institutions).status)


def process_big_tech(rows: Rows) -> list[BigTechItem]:
    """Big Tech / academia / unmapped as percentages of all rows per key."""
    groups = tally(normalize_rows(rows), by_conference_year, _affiliation_status)
    items = []
    for key in sorted(groups, key=_year_conference_order):
        group = groups[key]
        big_tech = clamp_percent(share(group.counts[STATUS_BIG_TECH], group.total))
        academia = clamp_percent(share(group.counts[STATUS_ACADEMIA], group.total))
        unmapped_count = group.total - group.counts[STATUS_BIG_TECH] - group.counts[STATUS_ACADEMIA]
        unmapped = clamp_percent(share(unmapped_count, group.total))
        items.append(BigTechItem(key[0], key[1], big_tech, academia, unmapped))
    return items


@dataclass(frozen=True, slots=True)
class BigTechRegionItem:
    conference: str
    year: int
    big_tech: float
    north_america: float
    europe: float
    asia: float
    others: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "conference": self.conference,
            "year": self.year,
            "bigTech": self.big_tech,
            "bigTechNA": self.north_america,
            "bigTechEU": self.europe,
            "bigTechAsia": self.asia,
            "bigTechOthers": self.others,
        }


def _region_split(record: ConferenceRecord) -> dict[str, float]:
    affiliation = classify_affiliation(record.institutions)
    if not affiliation.is_big_tech:
        return {}
    return region_weights(affiliation.regions)


def process_big_tech_by_region(rows: Rows) -> list[BigTechRegionItem]:
    """Big Tech percentage per key, split across blocs.

    The four regional shares are rebalanced so that they sum exactly to
    the rounded Big Tech percentage.
    """
    groups = tally(normalize_rows(rows), by_conference_year, _region_split)
    items = []
    for key in sorted(groups, key=_year_conference_order):
        group = groups[key]
        big_tech_count = sum(group.counts.values())
        big_tech = clamp_percent(share(big_tech_count, group.total))
        raw = {
            bucket: (group.counts[bucket] / group.total * 100) if group.total else 0.0
            for bucket in REGION_BUCKETS
        }
        regional = rebalance_regional_shares(raw, big_tech)
        items.append(BigTechRegionItem(
            conference=key[0],
            year=key[1],
            big_tech=big_tech,
            north_america=regional[NORTH_AMERICA],
            europe=regional[EUROPE],
            asia=regional[ASIA],
            others=regional[OTHERS],
        ))
    return items


_LONG_FORMAT_CATEGORIES: dict[str, str] = {
    "pct_has_big": "bt",
    "pct_no_big": "ac",
    "pct_all_none": "unk",
}


def process_big_tech_precomputed(rows: Rows) -> list[BigTechItem]:
    """Big Tech view from big_companies_analysis_papers_new.csv.

    Two layouts are accepted and may be mixed:
        long: ``level_2`` ∈ {pct_has_big, pct_no_big, pct_all_none},
              value in column ``0``
        wide: ``has_big_tech`` / ``big_tech_count`` / ``bigtech`` and
              ``academic_count`` / ``academia`` counts

    Big Tech and academia are renormalised so that they sum to 100;
    the unknown share is not reported (``unmapped`` is 0.0).
    """
    buckets: dict[tuple[str, int], dict[str, float]] = {}
    for row in rows:
        conference = normalize_conference_name(first_value(row, ("conference", "Conference")))
        year = extract_year(first_value(row, ("year", "Year")))
        if not conference or year is None:
            continue
        bucket = buckets.setdefault((conference, year), {"bt": 0.0, "ac": 0.0, "unk": 0.0})
        level = row.get("level_2")
        if level and row.get("0") is not None:
            category = _LONG_FORMAT_CATEGORIES.get(str(level).strip().lower())
            if category:
                bucket[category] += to_number(row.get("0"))
        else:
            bucket["bt"] += to_number(first_value(row, ("has_big_tech", "big_tech_count", "bigtech")))
            bucket["ac"] += to_number(first_value(row, ("academic_count", "academia")))

    items = []
    for key in sorted(buckets, key=_year_conference_order):
        bucket = buckets[key]
        big_tech = share(bucket["bt"], bucket["bt"] + bucket["ac"])
        academia = clamp_percent(round(100 - big_tech, ROUND_PRECISION))
        items.append(BigTechItem(key[0], key[1], big_tech, academia))
    return items


@dataclass(frozen=True, slots=True)
class BigTechSplitItem:
    """Average Big Tech / academia split over several (conference, year) items."""

    key: str | int
    big_tech: float
    academia: float
    samples: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "bigTech": self.big_tech,
            "academia": self.academia,
            "samples": self.samples,
        }


def _split(key: str | int, items: Sequence[BigTechItem]) -> BigTechSplitItem:
    big_tech_avg = sum(i.big_tech for i in items) / len(items)
    academia_avg = sum(i.academia for i in items) / len(items)
    big_tech = share(big_tech_avg, big_tech_avg + academia_avg)
    academia = clamp_percent(round(100 - big_tech, ROUND_PRECISION))
    return BigTechSplitItem(key, big_tech, academia, len(items))


def big_tech_split_by_conference(items: Sequence[BigTechItem]) -> list[BigTechSplitItem]:
    """Per conference, sorted by Big Tech share descending."""
    grouped: dict[str, list[BigTechItem]] = defaultdict(list)
    for item in items:
        grouped[item.conference].append(item)
    splits = [_split(conference, members) for conference, members in grouped.items()]
    splits.sort(key=lambda s: (-s.big_tech, s.key))
    return splits


def big_tech_split_by_year(items: Sequence[BigTechItem]) -> list[BigTechSplitItem]:
    """Per year, ascending."""
    grouped: dict[int, list[BigTechItem]] = defaultdict(list)
    for item in items:
        grouped[item.year].append(item)
    return [_split(year, grouped[year]) for year in sorted(grouped)]


# ---------------------------------------------------------------------------
# Country distribution
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CountryDistributionRow:
    """Country shares of one conference (or one year).

    ``shares`` holds (country, percent) pairs for the selected top
    countries. Countries outside the row's top list are folded into
    ``other_countries``; rows listing no country make up ``unmapped``.
    """

    key: str | int
    shares: tuple[tuple[str, float], ...]
    other_countries: float
    unmapped: float
    total: int

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key, **dict(self.shares)}
        data["Other Countries"] = self.other_countries
        data["Unmapped"] = self.unmapped
        data["total"] = self.total
        return data


@dataclass(frozen=True, slots=True)
class CountryDistributionResult:
    data: tuple[CountryDistributionRow, ...]
    countries: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"data": [row.to_dict() for row in self.data], "countries": list(self.countries)}


def process_country_distribution(
    rows: Rows,
    *,
    group_by: str = "conference",
    top_n: int = 10,
    year_range: YearRange | None = None,
) -> CountryDistributionResult:
    """Fractional country shares per conference or per year.

    Args:
        rows: Country-variant rows (``countries`` column).
        group_by: "conference" or "year".
        top_n: Countries kept per row before folding into Other Countries.
        year_range: Optional inclusive [start, end] filter.

    Returns:
        Rows plus the union of every row's top countries, ordered by
        overall weight descending.
    """
    if group_by not in ("conference", "year"):
        raise ValueError(f"group_by must be 'conference' or 'year', got {group_by!r}")

    records = [r for r in normalize_rows(rows) if within_years(r.year, year_range)]
    key_of = by_conference if group_by == "conference" else (lambda r: r.year)
    groups = tally(records, key_of, lambda r: fractional(r.countries))

    overall: dict[str, float] = defaultdict(float)
    for group in groups.values():
        for country, weight in group.counts.items():
            overall[country] += weight

    row_tops: dict[Hashable, list[str]] = {}
    for key, group in groups.items():
        ranked = sorted(group.counts.items(), key=lambda kv: (-kv[1], kv[0]))
        row_tops[key] = [country for country, _ in ranked[:top_n]]
    countries = sorted({c for top in row_tops.values() for c in top}, key=lambda c: (-overall[c], c))

    data = []
    for key, group in groups.items():
        top = set(row_tops[key])
        shares = tuple(
            (country, share(group.counts[country], group.total) if country in top else 0.0)
            for country in countries
        )
        other = sum(share(w, group.total) for c, w in group.counts.items() if c not in top)
        resolved = sum(group.counts.values())
        data.append(CountryDistributionRow(
            key=key,
            shares=shares,
            other_countries=round(other, ROUND_PRECISION),
            unmapped=share(group.total - resolved, group.total),
            total=int(group.total),
        ))

    if group_by == "year":
        data.sort(key=lambda row: row.key)
    else:
        primary = countries[0] if countries else None
        data.sort(key=lambda row: (-dict(row.shares).get(primary, 0.0), row.key))
    return CountryDistributionResult(tuple(data), tuple(countries))


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CitationItem:
    conference: str
    year: int
    accepted: int
    cited: float
    unknown: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "conference": self.conference,
            "year": self.year,
            "accepted": self.accepted,
            "cited": self.cited,
            "unknown": self.unknown,
        }


def process_citations(rows: Rows) -> list[CitationItem]:
    """Accepted papers, summed citations and unknown counts per key."""
    sums: dict[tuple[str, int], list[float]] = {}
    for record in normalize_rows(rows):
        entry = sums.setdefault(by_conference_year(record), [0, 0.0, 0.0])
        entry[0] += 1
        entry[1] += to_number(first_value(record.row, ("cited_by", "CitedBy")))
        entry[2] += to_number(first_value(record.row, ("unknown_count", "Unknown")))
    return [
        CitationItem(key[0], key[1], int(sums[key][0]), sums[key][1], sums[key][2])
        for key in sorted(sums, key=_year_conference_order)
    ]
