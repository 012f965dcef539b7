"""
confstats.representation — Committee vs papers representation.

Compares who sits on program committees with who publishes, per
conference (optionally per year), by continent or by country, and
reports the Gini-Simpson diversity of both populations.

Gap arithmetic:
    papersPercent    = round2(papers in bucket / papers in key * 100)
    committeePercent = round2(committee in bucket / committee in key * 100)
    gap              = round2(committeePercent − papersPercent)

    Swapping the two inputs negates every gap. A key with nothing on
    either side is dropped, never emitted as all-zero rows.

Country variants use fractional weights: a row listing n categories
gives 1/n to each, and the key's denominator is the sum of weights,
i.e. the number of rows that resolved to at least one category.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterable, Sequence

from confstats.aggregation import (
    GroupTally,
    Rows,
    YearRange,
    by_conference,
    by_conference_year,
    fractional,
    share,
    single,
    tally,
    within_years,
)
from confstats.constants import (
    DIVERSITY_BUCKETS,
    DIVERSITY_PRECISION,
    EXCLUDED_IDENTITIES,
    GAP_BUCKETS,
    OTHER,
    ROUND_PRECISION,
    UNKNOWN,
)
from confstats.normalization import (
    ConferenceRecord,
    gap_continent_bucket,
    normalize_continent,
    normalize_country_name,
    normalize_rows,
)

TOP_COUNTRIES_LIMIT = 14


# ---------------------------------------------------------------------------
# Result items
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CommitteeVsPapersItem:
    conference: str
    continent: str
    papers_percent: float
    committee_percent: float
    gap: float
    year: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"conference": self.conference}
        if self.year is not None:
            data["year"] = self.year
        data.update({
            "continent": self.continent,
            "papersPercent": self.papers_percent,
            "committeePercent": self.committee_percent,
            "gap": self.gap,
        })
        return data


@dataclass(frozen=True, slots=True)
class CountryGapItem:
    conference: str
    country: str
    papers_percent: float
    committee_percent: float
    gap: float
    year: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"conference": self.conference}
        if self.year is not None:
            data["year"] = self.year
        data.update({
            "country": self.country,
            "papersPercent": self.papers_percent,
            "committeePercent": self.committee_percent,
            "gap": self.gap,
        })
        return data


@dataclass(frozen=True, slots=True)
class CountryGapResult:
    """Country gap rows plus the ordered country columns they cover."""

    data: tuple[CountryGapItem, ...]
    countries: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"data": [item.to_dict() for item in self.data], "countries": list(self.countries)}


@dataclass(frozen=True, slots=True)
class DiversityData:
    conference: str
    committee: float
    papers: float

    def to_dict(self) -> dict[str, Any]:
        return {"conference": self.conference, "committee": self.committee, "papers": self.papers}


# ---------------------------------------------------------------------------
# Shared gap computation
# ---------------------------------------------------------------------------


def _gap_rows(
    papers: dict[Hashable, GroupTally],
    committee: dict[Hashable, GroupTally],
    categories: Sequence[str],
) -> Iterable[tuple[Hashable, str, float, float, float]]:
    empty = GroupTally()
    for key in sorted(set(papers) | set(committee)):
        p_group = papers.get(key, empty)
        c_group = committee.get(key, empty)
        p_total = sum(p_group.counts.values())
        c_total = sum(c_group.counts.values())
        if p_total == 0 and c_total == 0:
            continue
        for category in categories:
            p_pct = share(p_group.counts.get(category, 0.0), p_total)
            c_pct = share(c_group.counts.get(category, 0.0), c_total)
            yield key, category, p_pct, c_pct, round(c_pct - p_pct, ROUND_PRECISION)


def _windowed(rows: Rows, year_range: YearRange | None) -> list[ConferenceRecord]:
    return [r for r in normalize_rows(rows) if within_years(r.year, year_range)]


def _gap_bucket(record: ConferenceRecord) -> dict[str, float]:
    return single(gap_continent_bucket(record.continent))


def _continent_gap(
    papers_rows: Rows,
    committee_rows: Rows,
    key_of: Callable[[ConferenceRecord], Hashable],
    year_range: YearRange | None,
) -> list[CommitteeVsPapersItem]:
    papers = tally(_windowed(papers_rows, year_range), key_of, _gap_bucket)
    committee = tally(_windowed(committee_rows, year_range), key_of, _gap_bucket)
    items = []
    for key, continent, p_pct, c_pct, gap in _gap_rows(papers, committee, GAP_BUCKETS):
        conference, year = key if isinstance(key, tuple) else (key, None)
        items.append(CommitteeVsPapersItem(conference, continent, p_pct, c_pct, gap, year))
    return items


# ---------------------------------------------------------------------------
# Continent gap
# ---------------------------------------------------------------------------


def process_committee_vs_papers(
    papers_rows: Rows,
    committee_rows: Rows,
    year_range: YearRange | None = None,
) -> list[CommitteeVsPapersItem]:
    """Continent gap per conference, over an optional inclusive year window.

    Buckets, always emitted in this order: North America, Europe, Asia,
    Other, Unknown. Empty or literal UNKNOWN continents count as Unknown;
    anything else unrecognised counts as Other.
    """
    return _continent_gap(papers_rows, committee_rows, by_conference, year_range)


def process_committee_vs_papers_by_year(
    papers_rows: Rows,
    committee_rows: Rows,
    year_range: YearRange | None = None,
) -> list[CommitteeVsPapersItem]:
    """Continent gap per (conference, year)."""
    return _continent_gap(papers_rows, committee_rows, by_conference_year, year_range)


# ---------------------------------------------------------------------------
# Country gap
# ---------------------------------------------------------------------------


def _focus_set(focus_countries: Iterable[str] | None) -> tuple[str, ...] | None:
    if focus_countries is None:
        return None
    names = (normalize_country_name(c) for c in focus_countries)
    return tuple(dict.fromkeys(n for n in names if n not in EXCLUDED_IDENTITIES))


def _country_categorizer(
    focus: tuple[str, ...] | None,
    include_other_bucket: bool,
    include_unknown_bucket: bool,
) -> Callable[[ConferenceRecord], dict[str, float]]:
    focus_lookup = frozenset(focus) if focus is not None else None

    def categorize(record: ConferenceRecord) -> dict[str, float]:
        if not record.countries:
            return single(UNKNOWN) if include_unknown_bucket else {}
        if focus_lookup is None:
            return fractional(record.countries)
        categories = []
        for country in record.countries:
            if country in focus_lookup:
                categories.append(country)
            elif include_other_bucket:
                categories.append(OTHER)
        return fractional(categories)

    return categorize


def _country_gap(
    papers_rows: Rows,
    committee_rows: Rows,
    key_of: Callable[[ConferenceRecord], Hashable],
    *,
    focus_countries: Iterable[str] | None,
    include_other_bucket: bool,
    include_unknown_bucket: bool,
    year_range: YearRange | None,
) -> CountryGapResult:
    focus = _focus_set(focus_countries)
    categorize = _country_categorizer(focus, include_other_bucket, include_unknown_bucket)
    papers = tally(_windowed(papers_rows, year_range), key_of, categorize, count_unresolved=False)
    committee = tally(_windowed(committee_rows, year_range), key_of, categorize, count_unresolved=False)

    if focus is not None:
        countries = list(focus)
    else:
        weights: dict[str, float] = defaultdict(float)
        for groups in (papers, committee):
            for group in groups.values():
                for country, weight in group.counts.items():
                    if country not in EXCLUDED_IDENTITIES:
                        weights[country] += weight
        countries = sorted(weights, key=lambda c: (-weights[c], c))
    if include_other_bucket and focus is not None:
        countries.append(OTHER)
    if include_unknown_bucket:
        countries.append(UNKNOWN)

    items = []
    for key, country, p_pct, c_pct, gap in _gap_rows(papers, committee, countries):
        conference, year = key if isinstance(key, tuple) else (key, None)
        items.append(CountryGapItem(conference, country, p_pct, c_pct, gap, year))
    return CountryGapResult(tuple(items), tuple(countries))


def process_committee_vs_papers_country(
    papers_rows: Rows,
    committee_rows: Rows,
    *,
    focus_countries: Iterable[str] | None = None,
    include_other_bucket: bool = False,
    include_unknown_bucket: bool = False,
    year_range: YearRange | None = None,
) -> CountryGapResult:
    """Country gap per conference.

    Args:
        papers_rows: Paper rows with a ``countries`` column.
        committee_rows: Committee rows with a ``countries`` column.
        focus_countries: When given, only these countries get their own
            column. Other countries go to "Other" when
            ``include_other_bucket`` is set and are dropped otherwise.
        include_other_bucket: See ``focus_countries``.
        include_unknown_bucket: Rows listing no country count as
            "Unknown" instead of being skipped.
        year_range: Optional inclusive [start, end] window.

    Returns:
        CountryGapResult whose ``countries`` gives the column order.
    """
    return _country_gap(
        papers_rows,
        committee_rows,
        by_conference,
        focus_countries=focus_countries,
        include_other_bucket=include_other_bucket,
        include_unknown_bucket=include_unknown_bucket,
        year_range=year_range,
    )


def process_committee_vs_papers_by_year_country(
    papers_rows: Rows,
    committee_rows: Rows,
    *,
    focus_countries: Iterable[str] | None = None,
    include_other_bucket: bool = False,
    include_unknown_bucket: bool = False,
    year_range: YearRange | None = None,
) -> CountryGapResult:
    """Country gap per (conference, year). Options as in the per-conference variant."""
    return _country_gap(
        papers_rows,
        committee_rows,
        by_conference_year,
        focus_countries=focus_countries,
        include_other_bucket=include_other_bucket,
        include_unknown_bucket=include_unknown_bucket,
        year_range=year_range,
    )


def calculate_top_countries(
    papers_rows: Rows,
    committee_rows: Rows,
    limit: int = TOP_COUNTRIES_LIMIT,
) -> list[str]:
    """Countries with the largest combined fractional weight across both datasets."""
    weights: dict[str, float] = defaultdict(float)
    for rows in (papers_rows, committee_rows):
        for record in normalize_rows(rows):
            for country, weight in fractional(record.countries).items():
                weights[country] += weight
    ranked = sorted(weights, key=lambda c: (-weights[c], c))
    return ranked[:max(0, limit)]


# ---------------------------------------------------------------------------
# Diversity
# ---------------------------------------------------------------------------


def gini_simpson(counts: Iterable[float]) -> float:
    """1 − Σ p_i². Empty or all-zero input yields 0.0."""
    values = [c for c in counts if c > 0]
    total = sum(values)
    if total <= 0:
        return 0.0
    index = 1.0 - sum((c / total) ** 2 for c in values)
    return round(min(1.0, max(0.0, index)), DIVERSITY_PRECISION)


def _diversity_bucket(record: ConferenceRecord) -> dict[str, float]:
    return single(normalize_continent(record.continent))


def compute_diversity(papers_rows: Rows, committee_rows: Rows) -> list[DiversityData]:
    """Gini-Simpson index of continents per conference, for papers and committee.

    Years are pooled. Rows without a recognised continent are ignored.
    """
    papers = tally(normalize_rows(papers_rows), by_conference, _diversity_bucket,
                   count_unresolved=False)
    committee = tally(normalize_rows(committee_rows), by_conference, _diversity_bucket,
                      count_unresolved=False)
    empty = GroupTally()
    results = []
    for conference in sorted(set(papers) | set(committee)):
        p_counts = papers.get(conference, empty).counts
        c_counts = committee.get(conference, empty).counts
        results.append(DiversityData(
            conference=conference,
            committee=gini_simpson(c_counts.get(b, 0.0) for b in DIVERSITY_BUCKETS),
            papers=gini_simpson(p_counts.get(b, 0.0) for b in DIVERSITY_BUCKETS),
        ))
    return results
