"""
tests/test_insights.py — Country collaboration pairs and committee turnover.
"""

from __future__ import annotations

import pytest

from confstats.insights import (
    collaboration_evolution,
    committee_turnover,
    top_country_pairs,
)

PAPERS = [
    {"conference": "OSDI", "year": "2020", "countries": "France; Germany; Italy"},
    {"conference": "OSDI", "year": "2021", "countries": "France; Germany"},
    {"conference": "NSDI", "year": "2021", "countries": "France"},
    {"conference": "NSDI", "year": "", "countries": "Spain; Portugal"},
]


class TestCountryPairs:

    def test_weights_and_shares(self):
        pairs = top_country_pairs(PAPERS)
        assert [p.countries for p in pairs] == [
            ("France", "Germany"), ("France", "Italy"), ("Germany", "Italy"),
        ]
        assert pairs[0].weight == pytest.approx(4 / 3)
        assert pairs[0].share == 66.67
        assert pairs[1].share == 16.67

    def test_each_paper_contributes_one(self):
        pairs = top_country_pairs(PAPERS)
        assert sum(p.weight for p in pairs) == pytest.approx(2.0)

    def test_limit(self):
        assert len(top_country_pairs(PAPERS, limit=1)) == 1

    def test_to_dict(self):
        data = top_country_pairs(PAPERS)[0].to_dict()
        assert data["pair"] == "France ↔ Germany"
        assert data["countries"] == ["France", "Germany"]

    def test_no_multi_country_papers(self):
        assert top_country_pairs([PAPERS[2]]) == []


class TestCollaborationEvolution:

    def test_counts_per_year(self):
        years = collaboration_evolution(PAPERS, pairs=1)
        assert [(y.year, y.multi_country) for y in years] == [(2020, 1), (2021, 1)]
        assert years[1].to_dict() == {
            "year": 2021, "Total Multi-Country": 1, "France ↔ Germany": 1,
        }


COMMITTEE = [
    {"conference": "OSDI", "year": "2019", "name": "Alice"},
    {"conference": "NSDI", "year": "2019", "name": "alice "},
    {"conference": "OSDI", "year": "2020", "name": "Alice"},
    {"conference": "OSDI", "year": "2020", "name": "Bob"},
    {"conference": "OSDI", "year": "2021", "name": "Carol"},
    {"conference": "NSDI", "year": "2021", "name": "Bob"},
    {"conference": "NSDI", "year": "2021", "name": ""},
]


class TestCommitteeTurnover:

    def test_newcomers_and_returning(self):
        turnover = committee_turnover(COMMITTEE)
        assert [(t.year, t.newcomers, t.returning) for t in turnover.series] == [
            (2019, 1, 0), (2020, 1, 1), (2021, 1, 1),
        ]

    def test_tenure_histogram(self):
        tenure = dict(committee_turnover(COMMITTEE).tenure)
        assert tenure["1"] == 1
        assert tenure["2"] == 2
        assert tenure["6+"] == 0

    def test_veterans(self):
        veterans = committee_turnover(COMMITTEE, veterans=2).veterans
        assert [(v.name, v.years) for v in veterans] == [("Alice", 2), ("Bob", 2)]

    def test_to_dict(self):
        data = committee_turnover(COMMITTEE).to_dict()
        assert set(data) == {"turnover", "tenure", "veterans"}
        assert data["veterans"][0] == {"name": "Alice", "count": 2}
