"""
tests/test_policy.py — Policy-lever intervention simulation.
"""

from __future__ import annotations

import pytest

from resilience.constants import COUNTRY_TABLE, get_country
from resilience.fallback import fallback_dataset
from resilience.policy import PolicyLevers, apply_policy, simulate_policy
from resilience.scoring import ScoreSet, calc_scores


def _scores(name: str) -> ScoreSet:
    return calc_scores(fallback_dataset(get_country(name)))


class TestIdentity:
    @pytest.mark.parametrize("record", COUNTRY_TABLE, ids=lambda r: r.profile.name)
    def test_zero_levers_reproduce_scores(self, record):
        scores = calc_scores(fallback_dataset(record))
        after, env_gain, struct_gain, frag_red = apply_policy(scores, PolicyLevers())
        assert after == scores
        assert (env_gain, struct_gain, frag_red) == (0, 0, 0)

    def test_default_levers(self):
        outcome = simulate_policy(_scores("India"))
        assert outcome.after == outcome.before
        assert outcome.resilience_delta == 0


class TestIndiaGolden:
    def test_combined_levers(self):
        levers = PolicyLevers(
            co2_reduction_pct=40,
            renewable_adoption_pct=30,
            air_quality_improvement_pct=20,
            tree_restoration_multiplier=2,
        )
        outcome = simulate_policy(_scores("India"), levers)
        assert outcome.env_gain == 14
        assert outcome.struct_gain == 4
        assert outcome.fragility_reduction == 7
        assert outcome.after == {
            "env_score": 68, "struct_score": 67, "fragility": 2, "resilience": 61,
        }
        assert outcome.resilience_delta == 9
        assert outcome.recovery_2050 == 67
        assert outcome.prevented_degradation_2040 == 12.0
        assert outcome.category_before == "Fragile System"
        assert outcome.category_after == "Stable"


class TestLeverNormalization:
    def test_camel_case_aliases(self):
        levers = PolicyLevers.model_validate({
            "co2ReductionPct": 40,
            "renewableAdoptionPct": 30,
            "airQualityImprovementPct": 20,
            "treeRestorationMultiplier": 2,
        })
        assert levers.co2_reduction_pct == 40.0
        assert levers.tree_restoration_multiplier == 2.0

    def test_out_of_range_clamped(self):
        levers = PolicyLevers.model_validate({
            "co2_reduction_pct": 500,
            "renewable_adoption_pct": -10,
            "air_quality_improvement_pct": 61,
            "tree_restoration_multiplier": 9,
        })
        assert levers.co2_reduction_pct == 80.0
        assert levers.renewable_adoption_pct == 0.0
        assert levers.air_quality_improvement_pct == 60.0
        assert levers.tree_restoration_multiplier == 5.0

    def test_garbage_becomes_zero(self):
        levers = PolicyLevers.model_validate({
            "co2_reduction_pct": "abc",
            "renewable_adoption_pct": float("nan"),
            "air_quality_improvement_pct": None,
            "unknown_lever": 50,
        })
        assert levers == PolicyLevers()

    def test_numeric_strings_accepted(self):
        assert PolicyLevers.model_validate({"co2ReductionPct": "25"}).co2_reduction_pct == 25.0


class TestCaps:
    def test_scores_capped_at_100(self):
        top = ScoreSet(env_score=95, struct_score=98, fragility=3, resilience=86)
        levers = PolicyLevers(co2_reduction_pct=80, renewable_adoption_pct=80,
                              air_quality_improvement_pct=60, tree_restoration_multiplier=5)
        outcome = simulate_policy(top, levers)
        assert outcome.after["env_score"] == 100
        assert outcome.after["struct_score"] == 100
        assert outcome.after["fragility"] == 0
        assert outcome.after["resilience"] == 90
        assert outcome.recovery_2050 == 100
