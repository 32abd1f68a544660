"""
resilience.disaster — Acute disaster impact simulation.

Pure-computation module. Zero I/O. Zero global state.

Given the current ScoreSet and one catalog scenario:

    post_env        = max(0, env - env_drop)
    post_struct     = max(0, struct - struct_drop)
    post_fragility  = fragility + fragility_increase
    post_resilience = max(0, round(0.45*post_env + 0.45*post_struct - 0.10*post_fragility))
    projected_2050  = max(0, baseline_2050 - |long_term_delta|)

baseline_2050 is always projected from the ORIGINAL dataset. A disaster
changes the headline scores and overlays the long-term delta; it never
rewrites the dataset that drives the baseline projection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from resilience.constants import (
    DISASTER_CATALOG,
    DISASTERS_BY_ID,
    HORIZON_YEARS,
    DisasterScenario,
)
from resilience.fallback import EffectiveDataset
from resilience.projection import project_score
from resilience.scoring import ScoreSet, calc_scores, classify, composite_resilience


class DisasterOutcome(BaseModel):
    model_config = {"frozen": True}

    scenario_id: Optional[str]
    scenario_name: Optional[str]
    pre: dict[str, int]
    post: dict[str, int]
    resilience_drop: int
    gdp_shock_pct: float
    fragility_increase: int
    baseline_2050: int
    projected_2050: int
    long_term_delta: int
    recovery_rating: Optional[str]
    explanation: Optional[str]
    category_before: str
    category_after: str


@dataclass(frozen=True, slots=True)
class DisasterSelection:
    """At most one active scenario. Selecting the active one deselects it."""

    active: str | None = None

    def toggle(self, scenario_id: str) -> DisasterSelection:
        get_scenario(scenario_id)
        if self.active == scenario_id:
            return DisasterSelection(active=None)
        return DisasterSelection(active=scenario_id)

    @property
    def scenario(self) -> DisasterScenario | None:
        return DISASTERS_BY_ID[self.active] if self.active is not None else None


def get_scenario(scenario_id: str) -> DisasterScenario:
    """Raises KeyError for an id outside the catalog."""
    try:
        return DISASTERS_BY_ID[scenario_id]
    except KeyError:
        raise KeyError(
            f"Unknown disaster scenario '{scenario_id}'. "
            f"Valid: {[d.id for d in DISASTER_CATALOG]}"
        ) from None


def apply_disaster(scores: ScoreSet, scenario: DisasterScenario) -> ScoreSet:
    """Post-disaster headline scores."""
    post_env = max(0, scores.env_score - scenario.env_drop)
    post_struct = max(0, scores.struct_score - scenario.struct_drop)
    post_fragility = scores.fragility + scenario.fragility_increase
    return ScoreSet(
        env_score=post_env,
        struct_score=post_struct,
        fragility=post_fragility,
        resilience=max(0, composite_resilience(post_env, post_struct, post_fragility)),
    )


def simulate_disaster(
    data: EffectiveDataset,
    scenario_id: str | None,
    scores: ScoreSet | None = None,
) -> DisasterOutcome:
    """Run one scenario (or none) against the country's current scores.

    With scenario_id None the outcome reproduces the pre-disaster scores
    and projected_2050 equals the baseline projection.
    """
    if scores is None:
        scores = calc_scores(data)
    baseline_2050 = project_score(scores.resilience, data, HORIZON_YEARS)

    scenario = get_scenario(scenario_id) if scenario_id is not None else None
    if scenario is None:
        post = scores
        projected_2050 = baseline_2050
    else:
        post = apply_disaster(scores, scenario)
        projected_2050 = max(0, baseline_2050 - abs(scenario.long_term_delta))

    return DisasterOutcome(
        scenario_id=scenario.id if scenario else None,
        scenario_name=scenario.name if scenario else None,
        pre=scores.to_dict(),
        post=post.to_dict(),
        resilience_drop=scores.resilience - post.resilience,
        gdp_shock_pct=scenario.gdp_shock_pct if scenario else 0.0,
        fragility_increase=scenario.fragility_increase if scenario else 0,
        baseline_2050=baseline_2050,
        projected_2050=projected_2050,
        long_term_delta=-abs(scenario.long_term_delta) if scenario else 0,
        recovery_rating=scenario.recovery_rating if scenario else None,
        explanation=scenario.explanation if scenario else None,
        category_before=classify(scores.resilience).label,
        category_after=classify(post.resilience).label,
    )


def catalog() -> list[dict]:
    return [
        {
            "id": d.id,
            "name": d.name,
            "description": d.description,
            "env_drop": d.env_drop,
            "struct_drop": d.struct_drop,
            "gdp_shock_pct": d.gdp_shock_pct,
            "fragility_increase": d.fragility_increase,
            "long_term_delta": d.long_term_delta,
            "recovery_rating": d.recovery_rating,
        }
        for d in DISASTER_CATALOG
    ]
