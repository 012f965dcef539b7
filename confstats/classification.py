"""
confstats.classification — Big Tech vs academia affiliation rules.

Pure-computation module. Zero I/O. Patterns are compiled once at import.

Classification of one institutions string:
    empty text                       → unmapped
    text matching any bloc roster    → big_tech (regions = matched blocs)
    any other non-empty text         → academia

Matching is case-insensitive and anchored on word boundaries, so
"Intel" matches "Intel Labs" but not "Intelligent Systems Lab".

Regional attribution:
    A Big Tech record matching k blocs gives 1/k of its weight to each.
    After aggregation, rebalance_regional_shares() rescales the regional
    percentages so that, after rounding, they sum exactly to the overall
    Big Tech percentage. The rounding residual goes to the largest
    nonzero bucket, ties broken by RESIDUAL_PREFERENCE.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from confstats.constants import (
    BIG_TECH_ROSTERS,
    BLOCS,
    OTHERS,
    REGION_BUCKETS,
    RESIDUAL_PREFERENCE,
    ROUND_PRECISION,
)

STATUS_BIG_TECH = "big_tech"
STATUS_ACADEMIA = "academia"
STATUS_UNMAPPED = "unmapped"

_BLOC_PATTERNS: dict[str, re.Pattern[str]] = {
    bloc: re.compile(r"\b(?:" + "|".join(BIG_TECH_ROSTERS[bloc]) + r")\b", re.IGNORECASE)
    for bloc in BLOCS
}


@dataclass(frozen=True, slots=True)
class AffiliationClass:
    """Outcome of classifying one institutions string."""

    status: str
    regions: frozenset[str] = frozenset()

    @property
    def is_big_tech(self) -> bool:
        return self.status == STATUS_BIG_TECH


def classify_affiliation(institutions: str | None) -> AffiliationClass:
    """Classify free-text institutions as big_tech, academia or unmapped."""
    text = (institutions or "").strip()
    if not text:
        return AffiliationClass(STATUS_UNMAPPED)
    regions = frozenset(bloc for bloc, pattern in _BLOC_PATTERNS.items() if pattern.search(text))
    if regions:
        return AffiliationClass(STATUS_BIG_TECH, regions)
    return AffiliationClass(STATUS_ACADEMIA)


def region_weights(regions: frozenset[str]) -> dict[str, float]:
    """Even split of one record's unit weight across its matched blocs.

    A Big Tech record with no bloc (not produced by the current rosters)
    is attributed to Others in full.
    """
    if not regions:
        return {OTHERS: 1.0}
    weight = 1.0 / len(regions)
    return {bloc: weight for bloc in regions}


def rebalance_regional_shares(
    shares: Mapping[str, float],
    target: float,
) -> dict[str, float]:
    """Rescale and round regional percentages so they sum to ``target``.

    Args:
        shares: Unrounded percentage per region bucket. Missing buckets
            count as 0.
        target: The already-rounded overall Big Tech percentage.

    Returns:
        Dict keyed by every REGION_BUCKETS entry, in that order, whose
        values sum to ``target`` at ROUND_PRECISION.
    """
    raw = {bucket: max(0.0, float(shares.get(bucket, 0.0))) for bucket in REGION_BUCKETS}
    subtotal = sum(raw.values())
    if subtotal > 0:
        scale = target / subtotal
        rounded = {b: round(v * scale, ROUND_PRECISION) for b, v in raw.items()}
    else:
        rounded = {b: 0.0 for b in raw}

    residual = round(target - sum(rounded.values()), ROUND_PRECISION)
    if residual != 0:
        nonzero = [b for b in RESIDUAL_PREFERENCE if rounded[b] > 0]
        if nonzero:
            receiver = max(nonzero, key=lambda b: rounded[b])
        else:
            receiver = RESIDUAL_PREFERENCE[0]
        rounded[receiver] = round(rounded[receiver] + residual, ROUND_PRECISION)
    return rounded
