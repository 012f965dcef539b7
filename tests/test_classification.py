"""
tests/test_classification.py — Big Tech affiliation rules and regional split.
"""

from __future__ import annotations

import pytest

from confstats.classification import (
    STATUS_ACADEMIA,
    STATUS_BIG_TECH,
    STATUS_UNMAPPED,
    classify_affiliation,
    rebalance_regional_shares,
    region_weights,
)
from confstats.constants import ASIA, EUROPE, NORTH_AMERICA, OTHERS, REGION_BUCKETS


class TestClassifyAffiliation:

    def test_google_and_mit_is_north_american_big_tech(self):
        result = classify_affiliation("Google; MIT")
        assert result.status == STATUS_BIG_TECH
        assert result.is_big_tech
        assert result.regions == frozenset({NORTH_AMERICA})

    def test_word_boundaries(self):
        assert classify_affiliation("Intel Labs").regions == frozenset({NORTH_AMERICA})
        assert classify_affiliation("Intelligent Systems Lab").status == STATUS_ACADEMIA

    def test_case_insensitive(self):
        assert classify_affiliation("HUAWEI Technologies").regions == frozenset({ASIA})

    def test_multiple_blocs(self):
        result = classify_affiliation("Huawei; Ericsson Research; Microsoft")
        assert result.regions == frozenset({NORTH_AMERICA, EUROPE, ASIA})

    def test_academia(self):
        assert classify_affiliation("Stanford University").status == STATUS_ACADEMIA

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_unmapped(self, text):
        result = classify_affiliation(text)
        assert result.status == STATUS_UNMAPPED
        assert not result.is_big_tech


class TestRegionWeights:

    def test_single_bloc_gets_full_weight(self):
        assert region_weights(frozenset({NORTH_AMERICA})) == {NORTH_AMERICA: 1.0}

    def test_even_split(self):
        weights = region_weights(frozenset({NORTH_AMERICA, ASIA}))
        assert weights == {NORTH_AMERICA: 0.5, ASIA: 0.5}
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_no_bloc_goes_to_others(self):
        assert region_weights(frozenset()) == {OTHERS: 1.0}


class TestRebalance:

    def test_keys_in_bucket_order(self):
        result = rebalance_regional_shares({NORTH_AMERICA: 10.0}, 10.0)
        assert list(result) == list(REGION_BUCKETS)

    def test_thirds_reconcile_to_target(self):
        third = 100 / 3
        result = rebalance_regional_shares(
            {NORTH_AMERICA: third, EUROPE: third, ASIA: third}, 100.0,
        )
        assert round(sum(result.values()), 2) == 100.0
        assert result[NORTH_AMERICA] == 33.33
        assert result[ASIA] == 33.33
        assert result[EUROPE] == 33.34
        assert result[OTHERS] == 0.0

    def test_residual_to_largest_bucket(self):
        result = rebalance_regional_shares(
            {NORTH_AMERICA: 1 / 9 * 100, EUROPE: 4 / 9 * 100, ASIA: 1 / 9 * 100}, 66.67,
        )
        assert round(sum(result.values()), 2) == 66.67
        assert result[EUROPE] == 44.45

    def test_all_zero(self):
        assert rebalance_regional_shares({}, 0.0) == {b: 0.0 for b in REGION_BUCKETS}

    def test_zero_shares_positive_target_goes_to_others(self):
        assert rebalance_regional_shares({}, 5.0)[OTHERS] == 5.0

    def test_negative_shares_clamped(self):
        result = rebalance_regional_shares({NORTH_AMERICA: -3.0, ASIA: 20.0}, 20.0)
        assert result[NORTH_AMERICA] == 0.0
        assert result[ASIA] == 20.0
