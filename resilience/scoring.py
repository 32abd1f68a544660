"""
resilience.scoring — Scoring engine and category classifier.

THIS IS THE ONLY PLACE where the resilience formula chain and the category
bands are evaluated. The projector, the simulators and the aggregator MUST
call into this module. No duplicated weights elsewhere.

Formula chain (all inputs from an EffectiveDataset):

    gdp_norm    = clamp(0, 100, log10(gdp + 1) / log10(30000) * 100)
    co2_penalty = clamp(0, 100, co2_per_capita / 20 * 100)
    env         = round(0.35*(100 - co2_penalty) + 0.30*air_quality
                        + 0.20*min(100, forest_cover*1.5) + 0.15*renewables)
    struct      = round(0.50*gdp_norm + 0.30*min(100, gdp_growth*10)
                        + 0.20*renewables)
    fragility   = round(|struct - env|)
    resilience  = round(0.45*env + 0.45*struct - 0.10*fragility)

Resilience is deliberately NOT clamped to [0, 100]. Negative GDP growth can
push the structural score below zero and resilience with it.

Classification bands (frozen):
    <= 25 → Collapse Risk
    <= 40 → Critical Vulnerability
    <= 60 → Fragile System
    <= 80 → Stable
    >  80 → Highly Resilient
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

from resilience.constants import (
    CATEGORY_BANDS,
    CATEGORY_TOP,
    Category,
    clamp,
    round_half_up,
)
from resilience.fallback import EffectiveDataset

# ---------------------------------------------------------------------------
# Weights: frozen
# ---------------------------------------------------------------------------

GDP_NORM_CEILING = 30000.0

W_ENV_CO2 = 0.35
W_ENV_AIR = 0.30
W_ENV_FOREST = 0.20
W_ENV_RENEWABLES = 0.15

W_STRUCT_GDP = 0.50
W_STRUCT_GROWTH = 0.30
W_STRUCT_RENEWABLES = 0.20

W_RES_ENV = 0.45
W_RES_STRUCT = 0.45
W_RES_FRAGILITY = 0.10


@dataclass(frozen=True, slots=True)
class ScoreSet:
    env_score: int
    struct_score: int
    fragility: int
    resilience: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------

def gdp_norm(gdp: float) -> float:
    """Log-normalised GDP on [0, 100]. The +1 keeps gdp=0 defined."""
    return clamp(math.log10(gdp + 1) / math.log10(GDP_NORM_CEILING) * 100, 0.0, 100.0)


def co2_penalty(co2_per_capita: float) -> float:
    return clamp(co2_per_capita / 20 * 100, 0.0, 100.0)


def forest_index(forest_cover_pct: float) -> float:
    return min(100.0, forest_cover_pct * 1.5)


def growth_index(gdp_growth_pct: float) -> float:
    return min(100.0, gdp_growth_pct * 10)


# ---------------------------------------------------------------------------
# Formula chain
# ---------------------------------------------------------------------------

def env_score(data: EffectiveDataset) -> int:
    return round_half_up(
        W_ENV_CO2 * (100 - co2_penalty(data.co2_per_capita))
        + W_ENV_AIR * data.air_quality_score
        + W_ENV_FOREST * forest_index(data.forest_cover_pct)
        + W_ENV_RENEWABLES * data.renewables_pct
    )


def struct_score(data: EffectiveDataset) -> int:
    return round_half_up(
        W_STRUCT_GDP * gdp_norm(data.gdp)
        + W_STRUCT_GROWTH * growth_index(data.gdp_growth_pct)
        + W_STRUCT_RENEWABLES * data.renewables_pct
    )


def fragility_index(env: int, struct: int) -> int:
    return round_half_up(abs(struct - env))


def composite_resilience(env: int, struct: int, fragility: int) -> int:
    """The resilience blend, shared by scoring and every simulator.

    Unclamped. Callers that need a floor or ceiling apply it themselves.
    """
    return round_half_up(W_RES_ENV * env + W_RES_STRUCT * struct - W_RES_FRAGILITY * fragility)


def calc_scores(data: EffectiveDataset) -> ScoreSet:
    """Dataset → ScoreSet. Pure: identical input gives identical output."""
    env = env_score(data)
    struct = struct_score(data)
    fragility = fragility_index(env, struct)
    return ScoreSet(
        env_score=env,
        struct_score=struct,
        fragility=fragility,
        resilience=composite_resilience(env, struct, fragility),
    )


# ---------------------------------------------------------------------------
# Classification: THE ONLY classify() in the codebase
# ---------------------------------------------------------------------------

def classify(score: int) -> Category:
    """Map any integer score to its band. Defined outside [0, 100] too."""
    for upper, category in CATEGORY_BANDS:
        if score <= upper:
            return category
    return CATEGORY_TOP


# ---------------------------------------------------------------------------
# Component breakdown
# ---------------------------------------------------------------------------

def score_breakdown(data: EffectiveDataset, scores: ScoreSet | None = None) -> dict[str, Any]:
    """Weighted contribution of every indicator, each rounded for display.

    The parts are rounded individually, so they need not sum to the
    sub-score exactly.
    """
    if scores is None:
        scores = calc_scores(data)
    return {
        "environmental": {
            "co2": round_half_up(W_ENV_CO2 * max(0.0, 100 - co2_penalty(data.co2_per_capita))),
            "air_quality": round_half_up(W_ENV_AIR * data.air_quality_score),
            "forest_cover": round_half_up(W_ENV_FOREST * forest_index(data.forest_cover_pct)),
            "renewables": round_half_up(W_ENV_RENEWABLES * data.renewables_pct),
            "total": scores.env_score,
        },
        "structural": {
            "gdp_capacity": round_half_up(W_STRUCT_GDP * gdp_norm(data.gdp)),
            "gdp_growth": round_half_up(W_STRUCT_GROWTH * growth_index(data.gdp_growth_pct)),
            "renewables": round_half_up(W_STRUCT_RENEWABLES * data.renewables_pct),
            "total": scores.struct_score,
        },
        "fragility_penalty": round_half_up(W_RES_FRAGILITY * scores.fragility),
        "resilience": scores.resilience,
    }
