"""
confstats.constants — Single source of truth for dashboard vocabularies.

Every module that needs a label, alias table, roster or precision MUST
import it from here. No hardcoded duplicates anywhere in the codebase.

All tables are immutable after import. Changing any entry changes
published figures.
"""

from __future__ import annotations

from types import MappingProxyType

# ---------------------------------------------------------------------------
# Precision
# ---------------------------------------------------------------------------

ROUND_PRECISION: int = 2
"""Percentages, gaps, means and bands are rounded to ROUND_PRECISION
decimal places with Python's round(), once, when the value is finalized."""

DIVERSITY_PRECISION: int = 4
"""Gini-Simpson indices are reported with four decimals."""

PERCENT_TOLERANCE: float = 0.1
"""Allowed deviation from 100 when a complete partition is summed."""

# ---------------------------------------------------------------------------
# Continent labels and buckets
# ---------------------------------------------------------------------------

NORTH_AMERICA = "North America"
EUROPE = "Europe"
ASIA = "Asia"
OTHER = "Other"
OTHERS = "Others"
UNKNOWN = "Unknown"

DISTRIBUTION_BUCKETS: tuple[str, ...] = (NORTH_AMERICA, EUROPE, ASIA, OTHERS)
"""Continent-distribution columns. OTHERS collapses Other and Unknown."""

GAP_BUCKETS: tuple[str, ...] = (NORTH_AMERICA, EUROPE, ASIA, OTHER, UNKNOWN)
"""Committee-vs-papers rows are emitted for every bucket, in this order."""

DIVERSITY_BUCKETS: tuple[str, ...] = (NORTH_AMERICA, EUROPE, ASIA, OTHER)

CONTINENT_CODES: MappingProxyType[str, str] = MappingProxyType({
    "NA": NORTH_AMERICA,
    "NORTH AMERICA": NORTH_AMERICA,
    "NORTH_AMERICA": NORTH_AMERICA,
    "AMERICA": NORTH_AMERICA,
    "EU": EUROPE,
    "EUROPE": EUROPE,
    "AS": ASIA,
    "ASIA": ASIA,
    "SA": OTHER,
    "SOUTH AMERICA": OTHER,
    "SOUTH_AMERICA": OTHER,
    "OC": OTHER,
    "OCEANIA": OTHER,
    "AF": OTHER,
    "AFRICA": OTHER,
    "OTHER": OTHER,
    "OTHERS": OTHER,
})
"""Upper-cased continent spellings found in the CSVs → bucket label."""

UNKNOWN_CONTINENT_VALUES: frozenset[str] = frozenset({"", "UNKNOWN"})

# ---------------------------------------------------------------------------
# Conference codes
# ---------------------------------------------------------------------------

CONFERENCE_ALIASES: MappingProxyType[str, str] = MappingProxyType({
    "CLOUD": "SOCC",
    "IEEECLOUD": "IEEECLOUD",
    "IEEE CLOUD": "IEEECLOUD",
})

# ---------------------------------------------------------------------------
# Country names
# ---------------------------------------------------------------------------

COUNTRY_ALIASES: MappingProxyType[str, str] = MappingProxyType({
    "usa": "United States",
    "u.s.a.": "United States",
    "u.s.": "United States",
    "us": "United States",
    "united states of america": "United States",
    "united states": "United States",
    "the united states": "United States",
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "great britain": "United Kingdom",
    "england": "United Kingdom",
    "united kingdom of great britain and northern ireland": "United Kingdom",
    "south korea": "South Korea",
    "korea": "South Korea",
    "republic of korea": "South Korea",
    "korea, republic of": "South Korea",
    "korea, south": "South Korea",
    "korea (south)": "South Korea",
    "north korea": "North Korea",
    "china": "China",
    "prc": "China",
    "peoples republic of china": "China",
    "people's republic of china": "China",
    "p.r. china": "China",
    "pr china": "China",
    "mainland china": "China",
    "hong kong sar": "Hong Kong",
    "hong kong s.a.r.": "Hong Kong",
    "hong kong, china": "Hong Kong",
    "taiwan, province of china": "Taiwan",
    "republic of china": "Taiwan",
    "iran, islamic republic of": "Iran",
    "islamic republic of iran": "Iran",
    "venezuela, bolivarian republic of": "Venezuela",
    "bolivarian republic of venezuela": "Venezuela",
    "tanzania, united republic of": "Tanzania",
    "united republic of tanzania": "Tanzania",
    "czech republic": "Czechia",
    "the netherlands": "Netherlands",
    "holland": "Netherlands",
    "russian federation": "Russia",
    "uae": "United Arab Emirates",
    "u.a.e.": "United Arab Emirates",
})
"""Lower-cased, whitespace-collapsed spellings → canonical country name.
Every value is a fixed point of country normalization."""

UNKNOWN_COUNTRY_VALUES: frozenset[str] = frozenset({"unknown", "n/a", "none", "-"})
OTHER_COUNTRY_VALUES: frozenset[str] = frozenset({"other", "others"})

EXCLUDED_IDENTITIES: frozenset[str] = frozenset({UNKNOWN, OTHER})
"""Never ranked, never listed as a country."""

# ---------------------------------------------------------------------------
# Big Tech rosters: one tuple of regex fragments per bloc
# ---------------------------------------------------------------------------

BLOC_NORTH_AMERICA = NORTH_AMERICA
BLOC_EUROPE = EUROPE
BLOC_ASIA = ASIA

BLOCS: tuple[str, ...] = (BLOC_NORTH_AMERICA, BLOC_EUROPE, BLOC_ASIA)

BIG_TECH_ROSTERS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
    BLOC_ASIA: (
        "huawei", "alibaba", "bytedance", "tencent", "baidu",
        "samsung", "xiaomi", "tiktok",
    ),
    BLOC_NORTH_AMERICA: (
        "google", "alphabet", "microsoft", "azure", "amazon", "aws",
        "meta", "facebook", "apple", "ibm", "oracle", "cisco",
        "hp", "hpe", r"hewlett[\s-]*packard", "nvidia", "vmware",
        "netflix", "uber", "twitter", "yahoo", "snap", "salesforce",
        "amd", "qualcomm", "broadcom", "intel",
    ),
    BLOC_EUROPE: (
        "arm", "ericsson", "nokia", "siemens", "orange", "atos",
        r"deutsche\s+telekom", "bosch", "airbus", "sap",
        "telef[oó]nica", "vodafone", "thales", "philips",
    ),
})

REGION_BUCKETS: tuple[str, ...] = (NORTH_AMERICA, EUROPE, ASIA, OTHERS)
"""By-region Big Tech columns."""

RESIDUAL_PREFERENCE: tuple[str, ...] = (OTHERS, EUROPE, ASIA, NORTH_AMERICA)
"""Tie-break order when the rounding residual of the regional split is
assigned to the largest nonzero bucket."""

# ---------------------------------------------------------------------------
# Datasets
# ---------------------------------------------------------------------------

DATASET_TO_FILENAME: MappingProxyType[str, str] = MappingProxyType({
    "papers": "unifiedPaperData.csv",
    "committee": "unifiedCommitteeData.csv",
    "papers-country": "unifiedPaperCountryData.csv",
    "committee-country": "unifiedCommitteeCountryData.csv",
    "citations": "unifiedCitationsData.csv",
    "bigtech": "big_companies_analysis_papers_new.csv",
})

CORE_DATASETS: tuple[str, ...] = ("papers", "committee")
"""Datasets whose absence marks the service as not ready."""
