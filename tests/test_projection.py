"""
tests/test_projection.py — Trajectory projector, scenario bands, generational outlook.
"""

from __future__ import annotations

import pytest

from resilience.constants import COUNTRY_TABLE, get_country
from resilience.fallback import fallback_dataset
from resilience.projection import (
    generational_headline,
    generational_outlook,
    project_score,
    scenario_bands,
    trajectory,
)
from resilience.scoring import calc_scores


@pytest.fixture
def india():
    return fallback_dataset(get_country("India"))


class TestProjectScore:
    @pytest.mark.parametrize("record", COUNTRY_TABLE, ids=lambda r: r.profile.name)
    @pytest.mark.parametrize("base", [-20, 0, 37, 100, 140])
    def test_zero_years_is_identity(self, record, base: int):
        assert project_score(base, fallback_dataset(record), 0) == base

    def test_india_milestones(self, india):
        assert project_score(52, india, 5) == 57
        assert project_score(52, india, 15) == 66
        assert project_score(52, india, 25) == 75

    def test_negative_years_rejected(self, india):
        with pytest.raises(ValueError):
            project_score(52, india, -1)

    def test_clamped_to_range(self, india):
        assert project_score(99, india, 25) == 100
        shrinking = india.with_values(gdp_growth_pct=-10.0)
        assert project_score(5, shrinking, 25) == 0

    def test_high_emitter_drag(self):
        usa = fallback_dataset(get_country("USA"))
        # 46 + 2.5*0.15*10 - 0.3*10 = 46.75
        assert project_score(46, usa, 10) == 47

    def test_fragility_risk_applies_above_threshold(self, india):
        # Zero air quality with a saturated structural score pushes fragility past 30.
        fragile = india.with_values(gdp=29999, gdp_growth_pct=10.0, air_quality_score=0)
        assert calc_scores(fragile).fragility > 30
        base = calc_scores(fragile).resilience
        # lift 1.5*10 - co2 0.1*10 - fragility 0.2*10 = +12
        assert project_score(base, fragile, 10) == base + 12


class TestTrajectory:
    def test_india_trajectory(self, india):
        t = trajectory(india)
        assert t["present"] == 52
        assert [m["score"] for m in t["milestones"]] == [52, 57, 66, 75]
        assert [m["year"] for m in t["milestones"]] == [2025, 2030, 2040, 2050]
        assert t["score_2050"] == 75
        assert t["delta_25y"] == 23
        assert t["annual_rate"] == 0.92
        assert t["milestones"][-1]["category"] == "Stable"

    def test_bands(self, india):
        rows = scenario_bands(india)
        assert rows[0] == {"year": 2025, "baseline": 52, "optimistic": 52, "pessimistic": 52}
        assert rows[-1] == {"year": 2050, "baseline": 75, "optimistic": 85, "pessimistic": 66}
        for row in rows:
            assert row["pessimistic"] <= row["baseline"] <= row["optimistic"]


class TestGenerational:
    @pytest.mark.parametrize("score,headline", [
        (70, "Secure"), (69, "Fragile"), (55, "Fragile"), (54, "Critical"),
        (40, "Critical"), (39, "Collapse Risk"),
    ])
    def test_headline(self, score: int, headline: str):
        assert generational_headline(score) == headline

    def test_india_outlook(self, india):
        outlook = generational_outlook(india)
        assert outlook["headline"] == "Critical"
        assert [m["score"] for m in outlook["life_milestones"]] == [57, 66, 75]
        assert outlook["series"][0] == {
            "year": 2025, "resilience": 52, "env_trajectory": 54, "struct_trajectory": 63,
        }
        assert outlook["strong_growth"] is True
        assert outlook["poor_air"] is True
