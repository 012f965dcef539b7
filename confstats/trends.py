"""
confstats.trends — Mean ± standard deviation summaries over view items.

Works on any sequence of items carrying ``conference``, ``year`` and a
numeric metric (AsianTrendItem.percentage, BigTechItem.big_tech, ...).
The metric is named by attribute or given as a callable.

Variance is the population variance (divide by n). An empty group gives
mean 0 and a zero-width band instead of dividing by zero.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from confstats.constants import ROUND_PRECISION

Metric = str | Callable[[Any], float]


@dataclass(frozen=True, slots=True)
class TrendBand:
    mean: float
    upper: float
    lower: float
    sd: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"mean": self.mean, "upper": self.upper, "lower": self.lower, "sd": self.sd}


@dataclass(frozen=True, slots=True)
class YearBand:
    year: int
    band: TrendBand

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, **self.band.to_dict()}


@dataclass(frozen=True, slots=True)
class ConferenceSpread:
    conference: str
    mean: float
    sd: float
    samples: int

    def to_dict(self) -> dict[str, Any]:
        return {"conference": self.conference, "mean": self.mean, "sd": self.sd,
                "samples": self.samples}


def _getter(metric: Metric) -> Callable[[Any], float]:
    if callable(metric):
        return metric
    return lambda item: getattr(item, metric)


def _mean_sd(values: Sequence[float]) -> tuple[float, float]:
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def summarize_band(values: Iterable[float]) -> TrendBand:
    """mean, mean + sd and mean − sd, each rounded to ROUND_PRECISION."""
    mean, sd = _mean_sd(list(values))
    return TrendBand(
        mean=round(mean, ROUND_PRECISION),
        upper=round(mean + sd, ROUND_PRECISION),
        lower=round(mean - sd, ROUND_PRECISION),
        sd=round(sd, ROUND_PRECISION),
    )


def _select(items: Iterable[Any], conferences: Iterable[str] | None) -> list[Any]:
    if conferences is None:
        return list(items)
    wanted = set(conferences)
    return [item for item in items if item.conference in wanted]


def aggregate_by_year(
    items: Iterable[Any],
    metric: Metric,
    conferences: Iterable[str] | None = None,
) -> list[YearBand]:
    """One band per year across the selected conferences, years ascending."""
    value_of = _getter(metric)
    by_year: dict[int, list[float]] = defaultdict(list)
    for item in _select(items, conferences):
        by_year[item.year].append(float(value_of(item)))
    return [YearBand(year, summarize_band(by_year[year])) for year in sorted(by_year)]


def aggregate_by_conference(
    items: Iterable[Any],
    metric: Metric,
    conferences: Iterable[str] | None = None,
) -> list[ConferenceSpread]:
    """Mean and SD of the metric per conference, highest mean first."""
    value_of = _getter(metric)
    by_conference: dict[str, list[float]] = defaultdict(list)
    for item in _select(items, conferences):
        by_conference[item.conference].append(float(value_of(item)))
    spreads = []
    for conference, values in by_conference.items():
        mean, sd = _mean_sd(values)
        spreads.append(ConferenceSpread(conference, round(mean, ROUND_PRECISION),
                                        round(sd, ROUND_PRECISION), len(values)))
    spreads.sort(key=lambda s: (-s.mean, s.conference))
    return spreads


def rank_conferences_by_mean(
    items: Iterable[Any],
    metric: Metric,
    top_n: int | None = None,
    query: str | None = None,
) -> list[str]:
    """Conference codes ordered by mean metric, optionally substring-filtered and cut."""
    spreads = aggregate_by_conference(items, metric)
    names = [s.conference for s in spreads]
    if query and query.strip():
        needle = query.strip().lower()
        names = [n for n in names if needle in n.lower()]
    if top_n is not None:
        names = names[:max(0, top_n)]
    return names


def pivot_by_year(
    items: Iterable[Any],
    metric: Metric,
    conferences: Sequence[str],
) -> list[dict[str, Any]]:
    """Year rows with one column per conference (0 where a year is missing)."""
    value_of = _getter(metric)
    wanted = set(conferences)
    rows: dict[int, dict[str, Any]] = {}
    for item in items:
        if item.conference not in wanted:
            continue
        row = rows.get(item.year)
        if row is None:
            row = rows[item.year] = {"year": item.year, **{c: 0 for c in conferences}}
        row[item.conference] = value_of(item)
    return [rows[year] for year in sorted(rows)]
