"""
tests/test_representation.py — Committee vs papers gaps, top countries, diversity.
"""

from __future__ import annotations

import pytest

from confstats.constants import ASIA, EUROPE, GAP_BUCKETS, NORTH_AMERICA, OTHER, UNKNOWN
from confstats.representation import (
    calculate_top_countries,
    compute_diversity,
    gini_simpson,
    process_committee_vs_papers,
    process_committee_vs_papers_by_year,
    process_committee_vs_papers_by_year_country,
    process_committee_vs_papers_country,
)


def _row(conference="OSDI", year="2020", **fields):
    return {"conference": conference, "year": year, **fields}


PAPERS = [_row(predominant_continent="NA"), _row(predominant_continent="EU")]
COMMITTEE = [_row(continent="AS")]


# ---------------------------------------------------------------------------
# Continent gap
# ---------------------------------------------------------------------------


class TestCommitteeVsPapers:

    def test_two_papers_one_committee_member(self):
        items = process_committee_vs_papers(PAPERS, COMMITTEE)
        assert [i.continent for i in items] == list(GAP_BUCKETS)
        by_bucket = {i.continent: i for i in items}
        assert by_bucket[NORTH_AMERICA].papers_percent == 50.0
        assert by_bucket[EUROPE].papers_percent == 50.0
        assert by_bucket[ASIA].papers_percent == 0.0
        assert by_bucket[OTHER].papers_percent == 0.0
        assert by_bucket[UNKNOWN].papers_percent == 0.0
        assert by_bucket[ASIA].committee_percent == 100.0
        assert by_bucket[ASIA].gap == 100.0
        assert by_bucket[NORTH_AMERICA].gap == -50.0

    def test_swapping_inputs_negates_gaps(self):
        rows_a = PAPERS + [_row("NSDI", predominant_continent="AS"), _row("NSDI", continent="")]
        rows_b = COMMITTEE + [_row("NSDI", continent="NA"), _row("NSDI", continent="Mars")]
        forward = {(i.conference, i.continent): i.gap
                   for i in process_committee_vs_papers(rows_a, rows_b)}
        backward = {(i.conference, i.continent): i.gap
                    for i in process_committee_vs_papers(rows_b, rows_a)}
        assert forward.keys() == backward.keys()
        for key, gap in forward.items():
            assert backward[key] == pytest.approx(-gap)

    def test_unknown_and_other_buckets(self):
        papers = [_row(predominant_continent=""), _row(predominant_continent="Mars")]
        items = {i.continent: i for i in process_committee_vs_papers(papers, [])}
        assert items[UNKNOWN].papers_percent == 50.0
        assert items[OTHER].papers_percent == 50.0
        assert items[UNKNOWN].committee_percent == 0.0

    def test_year_window(self):
        papers = PAPERS + [_row(year="2019", predominant_continent="AS")]
        items = {i.continent: i for i in process_committee_vs_papers(papers, COMMITTEE, (2020, 2020))}
        assert items[ASIA].papers_percent == 0.0

    def test_empty_inputs(self):
        assert process_committee_vs_papers([], []) == []

    def test_by_year_keys(self):
        papers = PAPERS + [_row(year="2021", predominant_continent="AS")]
        items = process_committee_vs_papers_by_year(papers, COMMITTEE)
        assert sorted({(i.conference, i.year) for i in items}) == [("OSDI", 2020), ("OSDI", 2021)]
        data = items[0].to_dict()
        assert data["year"] == 2020
        assert set(data) == {"conference", "year", "continent", "papersPercent",
                             "committeePercent", "gap"}

    def test_per_conference_to_dict_has_no_year(self):
        item = process_committee_vs_papers(PAPERS, COMMITTEE)[0]
        assert "year" not in item.to_dict()


# ---------------------------------------------------------------------------
# Country gap
# ---------------------------------------------------------------------------


COUNTRY_PAPERS = [_row(countries="France; Germany"), _row(countries="France")]
COUNTRY_COMMITTEE = [_row(countries="Germany")]


class TestCountryGap:

    def test_all_countries(self):
        result = process_committee_vs_papers_country(COUNTRY_PAPERS, COUNTRY_COMMITTEE)
        assert result.countries == ("France", "Germany")
        items = {i.country: i for i in result.data}
        assert items["France"].papers_percent == 75.0
        assert items["Germany"].papers_percent == 25.0
        assert items["Germany"].committee_percent == 100.0
        assert items["France"].gap == -75.0
        assert items["Germany"].gap == 75.0

    def test_focus_with_other_bucket(self):
        result = process_committee_vs_papers_country(
            COUNTRY_PAPERS, COUNTRY_COMMITTEE,
            focus_countries=["france"], include_other_bucket=True,
        )
        assert result.countries == ("France", OTHER)
        items = {i.country: i for i in result.data}
        assert items["France"].papers_percent == 75.0
        assert items[OTHER].papers_percent == 25.0
        assert items[OTHER].committee_percent == 100.0

    def test_focus_without_other_bucket_drops_rest(self):
        result = process_committee_vs_papers_country(
            COUNTRY_PAPERS, COUNTRY_COMMITTEE, focus_countries=["France"],
        )
        assert result.countries == ("France",)
        (item,) = result.data
        assert item.papers_percent == 100.0
        assert item.committee_percent == 0.0

    def test_unknown_bucket(self):
        papers = COUNTRY_PAPERS + [_row(countries="")]
        result = process_committee_vs_papers_country(
            papers, COUNTRY_COMMITTEE, include_unknown_bucket=True,
        )
        assert result.countries[-1] == UNKNOWN
        items = {i.country: i for i in result.data}
        assert items[UNKNOWN].papers_percent == 33.33

    def test_by_year(self):
        papers = COUNTRY_PAPERS + [_row(year="2021", countries="Japan")]
        result = process_committee_vs_papers_by_year_country(papers, COUNTRY_COMMITTEE)
        years = {i.year for i in result.data}
        assert years == {2020, 2021}
        japan_2021 = next(i for i in result.data if i.year == 2021 and i.country == "Japan")
        assert japan_2021.papers_percent == 100.0

    def test_to_dict(self):
        data = process_committee_vs_papers_country(COUNTRY_PAPERS, COUNTRY_COMMITTEE).to_dict()
        assert data["countries"] == ["France", "Germany"]
        assert data["data"][0]["country"] == "France"


class TestTopCountries:

    def test_combined_weight(self):
        committee = [_row(countries="France"), _row(countries="Japan")]
        assert calculate_top_countries([_row(countries="France; Germany")], committee, limit=2) == [
            "France", "Japan",
        ]

    def test_sentinels_never_listed(self):
        top = calculate_top_countries([_row(countries="Unknown; Other; Peru")], [])
        assert top == ["Peru"]


# ---------------------------------------------------------------------------
# Diversity
# ---------------------------------------------------------------------------


class TestDiversity:

    @pytest.mark.parametrize("counts,expected", [
        ([], 0.0),
        ([0, 0], 0.0),
        ([5], 0.0),
        ([1, 1], 0.5),
        ([1, 1, 1, 1], 0.75),
    ])
    def test_gini_simpson(self, counts, expected):
        assert gini_simpson(counts) == expected

    def test_bounds(self):
        for counts in ([3, 1], [10, 0, 0, 1], [1, 2, 3, 4], [100]):
            assert 0.0 <= gini_simpson(counts) <= 1.0

    def test_even_spread_approaches_one_minus_one_over_k(self):
        assert gini_simpson([25, 25, 25, 25]) == pytest.approx(1 - 1 / 4)

    def test_compute_diversity(self):
        papers = [_row(predominant_continent="NA"), _row(predominant_continent="EU"),
                  _row(predominant_continent="")]
        committee = [_row(continent="NA"), _row(continent="NA")]
        (item,) = compute_diversity(papers, committee)
        assert item.conference == "OSDI"
        assert item.papers == 0.5
        assert item.committee == 0.0
