"""
tests/test_aggregation.py — Group-count-percentage engine and view reducers.

Covers:
    - share / fractional / tally primitives
    - Continent distribution (paper and committee) and its partition
    - Asian trend denominator
    - Big Tech, Big Tech by region, legacy and split summaries
    - Country distribution
    - Citations
"""

from __future__ import annotations

import pytest

from confstats.aggregation import (
    BigTechItem,
    big_tech_split_by_conference,
    big_tech_split_by_year,
    by_conference,
    fractional,
    process_asian_trends,
    process_big_tech,
    process_big_tech_by_region,
    process_big_tech_precomputed,
    process_citations,
    process_committee_continent_distribution,
    process_continent_distribution,
    process_country_distribution,
    share,
    single,
    tally,
    to_number,
)
from confstats.constants import ASIA, EUROPE, NORTH_AMERICA, OTHERS
from confstats.normalization import normalize_rows


def _row(conference="OSDI", year="2020", **fields):
    return {"conference": conference, "year": year, **fields}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TestEngine:

    def test_share_rounds(self):
        assert share(1, 3) == 33.33
        assert share(2, 3) == 66.67

    def test_share_zero_total(self):
        assert share(5, 0) == 0.0

    def test_fractional_distinct(self):
        assert fractional(["A", "B", "A"]) == {"A": 0.5, "B": 0.5}
        assert fractional([]) == {}

    def test_single(self):
        assert single("Asia") == {"Asia": 1.0}
        assert single(None) == {}

    def test_tally_counts_unresolved_in_total(self):
        records = normalize_rows([_row(continent="AS"), _row(continent="")])
        groups = tally(records, by_conference, lambda r: single(r.continent or None))
        assert groups["OSDI"].total == 2
        assert groups["OSDI"].counts == {"AS": 1.0}

    def test_tally_can_ignore_unresolved(self):
        records = normalize_rows([_row(continent="AS"), _row(continent="")])
        groups = tally(records, by_conference, lambda r: single(r.continent or None),
                       count_unresolved=False)
        assert groups["OSDI"].total == 1

    def test_to_number(self):
        assert to_number("12") == 12.0
        assert to_number(" 3.5 ") == 3.5
        assert to_number("") == 0.0
        assert to_number("abc") == 0.0
        assert to_number("nan") == 0.0
        assert to_number(None) == 0.0


# ---------------------------------------------------------------------------
# Continent distribution
# ---------------------------------------------------------------------------


class TestContinentDistribution:

    def test_counts_and_others_bucket(self):
        rows = [
            _row(predominant_continent="NA"),
            _row(predominant_continent="EU"),
            _row(predominant_continent="AS"),
            _row(predominant_continent="SA"),
            _row(predominant_continent=""),
        ]
        (item,) = process_continent_distribution(rows)
        assert (item.north_america, item.europe, item.asia, item.others) == (1, 1, 1, 2)
        assert item.total == 5
        assert item.percentages() == {NORTH_AMERICA: 20.0, EUROPE: 20.0, ASIA: 20.0, OTHERS: 40.0}

    def test_order_year_then_conference(self):
        rows = [
            _row("OSDI", "2021", predominant_continent="NA"),
            _row("SOSP", "2020", predominant_continent="NA"),
            _row("NSDI", "2020", predominant_continent="NA"),
        ]
        keys = [(i.conference, i.year) for i in process_continent_distribution(rows)]
        assert keys == [("NSDI", 2020), ("SOSP", 2020), ("OSDI", 2021)]

    def test_percentages_partition_100(self):
        rows = [
            _row(predominant_continent="NA"),
            _row(predominant_continent="EU"),
            _row(predominant_continent="AS"),
            _row("NSDI", predominant_continent="AS"),
            _row("NSDI", predominant_continent="NA"),
            _row("NSDI", predominant_continent="bogus"),
        ]
        for item in process_continent_distribution(rows):
            assert sum(item.percentages().values()) == pytest.approx(100, abs=0.1)

    def test_row_without_year_excluded(self):
        rows = [_row(predominant_continent="NA"), _row(year="", predominant_continent="EU")]
        (item,) = process_continent_distribution(rows)
        assert item.total == 1
        assert item.europe == 0

    def test_committee_uses_continent_column(self):
        rows = [_row(continent="EU"), _row(continent="EU"), _row(continent="NA")]
        (item,) = process_committee_continent_distribution(rows)
        assert item.europe == 2
        assert item.north_america == 1

    def test_to_dict_labels(self):
        (item,) = process_continent_distribution([_row(predominant_continent="NA")])
        data = item.to_dict()
        assert data[NORTH_AMERICA] == 1
        assert data["percentages"][NORTH_AMERICA] == 100.0

    def test_empty_input(self):
        assert process_continent_distribution([]) == []


# ---------------------------------------------------------------------------
# Asian trend
# ---------------------------------------------------------------------------


class TestAsianTrend:

    def test_denominator_excludes_unresolved(self):
        rows = [
            _row(predominant_continent="AS"),
            _row(predominant_continent="AS"),
            _row(predominant_continent="NA"),
            _row(predominant_continent=""),
        ]
        (item,) = process_asian_trends(rows)
        assert item.percentage == 66.67

    def test_only_unresolved_rows_yield_no_item(self):
        assert process_asian_trends([_row(predominant_continent="")]) == []


# ---------------------------------------------------------------------------
# Big Tech
# ---------------------------------------------------------------------------


class TestBigTech:

    def test_three_way_split(self):
        rows = [
            _row(institutions="Google; MIT"),
            _row(institutions="MIT"),
            _row(institutions=""),
        ]
        (item,) = process_big_tech(rows)
        assert item.big_tech == 33.33
        assert item.academia == 33.33
        assert item.unmapped == 33.33

    def test_to_dict_keys(self):
        (item,) = process_big_tech([_row(institutions="Google")])
        assert item.to_dict() == {
            "conference": "OSDI", "year": 2020,
            "bigTech": 100.0, "academia": 0.0, "unmapped": 0.0,
        }


class TestBigTechByRegion:

    def test_google_and_mit_full_weight_north_america(self):
        (item,) = process_big_tech_by_region([_row(institutions="Google; MIT")])
        assert item.big_tech == 100.0
        assert item.north_america == 100.0
        assert item.europe == 0.0
        assert item.asia == 0.0
        assert item.others == 0.0

    def test_split_across_blocs(self):
        rows = [_row(institutions="Huawei; Google"), _row(institutions="MIT")]
        (item,) = process_big_tech_by_region(rows)
        assert item.big_tech == 50.0
        assert item.north_america == 25.0
        assert item.asia == 25.0

    def test_regions_reconcile_to_big_tech(self):
        rows = [
            _row(institutions="Huawei; Ericsson; Google"),
            _row(institutions="Nokia"),
            _row(institutions="MIT"),
            _row("NSDI", institutions="Alibaba; Meta"),
            _row("NSDI", institutions="Samsung"),
            _row("NSDI", institutions="Princeton"),
        ]
        for item in process_big_tech_by_region(rows):
            regional = item.north_america + item.europe + item.asia + item.others
            assert round(regional, 2) == item.big_tech

    def test_to_dict_keys(self):
        (item,) = process_big_tech_by_region([_row(institutions="SAP")])
        assert set(item.to_dict()) == {
            "conference", "year", "bigTech", "bigTechNA", "bigTechEU",
            "bigTechAsia", "bigTechOthers",
        }
        assert item.to_dict()["bigTechEU"] == 100.0


class TestBigTechPrecomputed:

    def test_long_format(self):
        rows = [
            _row(level_2="pct_has_big", **{"0": "30"}),
            _row(level_2="pct_no_big", **{"0": "60"}),
            _row(level_2="pct_all_none", **{"0": "10"}),
        ]
        (item,) = process_big_tech_precomputed(rows)
        assert item.big_tech == 33.33
        assert item.academia == 66.67
        assert item.unmapped == 0.0

    def test_wide_format(self):
        (item,) = process_big_tech_precomputed([_row(has_big_tech="2", academic_count="6")])
        assert item.big_tech == 25.0
        assert item.academia == 75.0

    def test_rows_without_year_skipped(self):
        assert process_big_tech_precomputed([_row(year="", has_big_tech="2")]) == []


class TestBigTechSplit:

    ITEMS = [
        BigTechItem("A", 2020, 20.0, 80.0),
        BigTechItem("A", 2021, 40.0, 60.0),
        BigTechItem("B", 2020, 50.0, 50.0),
    ]

    def test_by_conference_sorted_by_big_tech(self):
        splits = big_tech_split_by_conference(self.ITEMS)
        assert [s.key for s in splits] == ["B", "A"]
        assert splits[1].big_tech == 30.0
        assert splits[1].academia == 70.0
        assert splits[1].samples == 2

    def test_by_year(self):
        splits = big_tech_split_by_year(self.ITEMS)
        assert [(s.key, s.big_tech) for s in splits] == [(2020, 35.0), (2021, 40.0)]

    def test_split_partitions_100(self):
        for split in big_tech_split_by_conference(self.ITEMS):
            assert split.big_tech + split.academia == pytest.approx(100)


# ---------------------------------------------------------------------------
# Country distribution
# ---------------------------------------------------------------------------


class TestCountryDistribution:

    ROWS = [
        _row("OSDI", "2020", countries="France; Germany"),
        _row("OSDI", "2021", countries="France"),
        _row("NSDI", "2020", countries=""),
        _row("NSDI", "2020", countries="Japan"),
    ]

    def test_by_conference(self):
        result = process_country_distribution(self.ROWS)
        assert result.countries == ("France", "Japan", "Germany")
        osdi, nsdi = result.data
        assert osdi.key == "OSDI"
        assert dict(osdi.shares) == {"France": 75.0, "Japan": 0.0, "Germany": 25.0}
        assert osdi.unmapped == 0.0
        assert nsdi.unmapped == 50.0
        assert dict(nsdi.shares)["Japan"] == 50.0

    def test_by_year(self):
        result = process_country_distribution(self.ROWS, group_by="year")
        assert [row.key for row in result.data] == [2020, 2021]
        year_2020 = dict(result.data[0].shares)
        assert year_2020["Japan"] == 33.33
        assert year_2020["France"] == 16.67

    def test_top_n_folds_into_other_countries(self):
        result = process_country_distribution(self.ROWS, top_n=1)
        osdi = result.data[0]
        assert result.countries == ("France", "Japan")
        assert osdi.other_countries == 25.0

    def test_year_range(self):
        result = process_country_distribution(self.ROWS, year_range=(2021, None))
        assert [row.key for row in result.data] == ["OSDI"]
        assert dict(result.data[0].shares) == {"France": 100.0}

    def test_invalid_group_by(self):
        with pytest.raises(ValueError, match="group_by"):
            process_country_distribution(self.ROWS, group_by="continent")

    def test_to_dict(self):
        data = process_country_distribution(self.ROWS).to_dict()
        assert data["countries"] == ["France", "Japan", "Germany"]
        assert data["data"][0]["Other Countries"] == 0.0
        assert data["data"][0]["total"] == 2


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


class TestCitations:

    def test_sums_per_key(self):
        rows = [
            _row(cited_by="10", unknown_count="1"),
            _row(cited_by="5", unknown_count=""),
            _row("NSDI", "2019", CitedBy="7"),
        ]
        nsdi, osdi = process_citations(rows)
        assert (nsdi.conference, nsdi.accepted, nsdi.cited) == ("NSDI", 1, 7.0)
        assert osdi.accepted == 2
        assert osdi.cited == 15.0
        assert osdi.unknown == 1.0
