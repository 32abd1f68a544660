"""
tests/test_ripple_aggregate.py — Ripple simulator and multi-country comparison.
"""

from __future__ import annotations

import pytest

from resilience.aggregate import benchmark, comparison, rank_countries, score_table
from resilience.constants import RIPPLE_TARGETS
from resilience.ripple import instability_factor, regional_impact_pct, simulate_ripple

# ---------------------------------------------------------------------------
# Ripple
# ---------------------------------------------------------------------------


class TestRipple:
    def test_india(self):
        outcome = simulate_ripple(52)
        assert outcome.instability_factor == 0.96
        assert outcome.global_baseline == 62
        assert outcome.global_simulated == 61
        assert outcome.regional_impact_pct == 2.3
        assert outcome.poses_systemic_risk is True

    def test_no_instability_at_or_above_60(self):
        assert instability_factor(60) == 0.0
        assert instability_factor(95) == 0.0
        outcome = simulate_ripple(75)
        assert outcome.global_simulated == 62
        assert outcome.poses_systemic_risk is False

    @pytest.mark.parametrize("resilience,pct", [
        (49, 4.2), (50, 2.3), (64, 2.3), (65, 0.9),
    ])
    def test_regional_impact_bands(self, resilience: int, pct: float):
        assert regional_impact_pct(resilience) == pct

    def test_global_floor(self):
        assert simulate_ripple(-1000).global_simulated == 0

    def test_neighbor_deltas_are_static(self):
        low = [a.delta for a in simulate_ripple(10).affected]
        high = [a.delta for a in simulate_ripple(90).affected]
        assert low == high == [t.delta for t in RIPPLE_TARGETS]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class TestRanking:
    def test_literal_order(self):
        ranking = rank_countries()
        assert [(r["name"], r["resilience"]) for r in ranking] == [
            ("Brazil", 63),
            ("India", 52),
            ("Germany", 51),
            ("China", 50),
            ("USA", 46),
            ("Bangladesh", 43),
            ("Nigeria", 42),
            ("Australia", 42),
        ]
        assert [r["rank"] for r in ranking] == list(range(1, 9))

    def test_tie_keeps_table_order(self):
        rows = [
            {"name": "A", "resilience": 40},
            {"name": "B", "resilience": 50},
            {"name": "C", "resilience": 40},
        ]
        assert [r["name"] for r in rank_countries(rows)] == ["B", "A", "C"]

    def test_stable_across_calls(self):
        assert rank_countries() == rank_countries()

    def test_selected_flag(self):
        ranking = rank_countries(selected="Germany")
        assert [r["name"] for r in ranking if r["is_selected"]] == ["Germany"]

    def test_score_table_in_table_order(self):
        assert [r["name"] for r in score_table()][:3] == ["India", "USA", "China"]


class TestComparison:
    def test_views(self):
        view = comparison(selected="India")
        assert len(view["countries"]) == 8
        assert view["ranking"][1]["is_selected"] is True
        co2 = [r["co2_per_capita"] for r in view["co2_vs_resilience"]]
        assert co2 == sorted(co2)
        assert view["env_vs_struct"][0] == {"name": "India", "env_score": 54, "struct_score": 63}


class TestBenchmark:
    def test_india(self):
        assert benchmark("India", 52) == {
            "global_average": 54,
            "regional_average": 48,
            "delta_vs_global": -2,
            "delta_vs_regional": 4,
        }

    def test_default_region(self):
        assert benchmark("Brazil", 63)["regional_average"] == 52
