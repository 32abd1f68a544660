"""
resilience.policy — Policy-lever intervention simulation.

Pure-computation module. Zero I/O. Zero global state. Zero randomness.

Four independent levers produce gains against the current ScoreSet:

    env_gain       = round(co2*0.18 + renew*0.14 + air*0.12 + trees*0.10)
    struct_gain    = round(renew*0.08 + co2*0.04)
    frag_reduction = round((env_gain + struct_gain) * 0.4)
    new_env        = min(100, env + env_gain)
    new_struct     = min(100, struct + struct_gain)
    new_fragility  = max(0, fragility - frag_reduction)
    new_resilience = min(100, round(0.45*new_env + 0.45*new_struct - 0.10*new_fragility))
    recovery_2050  = min(100, new_resilience + round(co2*0.08 + renew*0.10))

All levers at zero reproduce the input ScoreSet exactly.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, model_validator

from resilience.constants import LEVER_BOUNDS, round_half_up
from resilience.scoring import ScoreSet, classify, composite_resilience


class PolicyLevers(BaseModel):
    """Tolerant lever model.

    - Out-of-range values → clamped to the lever's bounds
    - NaN/Inf → 0.0
    - Missing levers → 0.0
    - Unknown fields → silently ignored
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    co2_reduction_pct: float = Field(0.0, alias="co2ReductionPct")
    renewable_adoption_pct: float = Field(0.0, alias="renewableAdoptionPct")
    air_quality_improvement_pct: float = Field(0.0, alias="airQualityImprovementPct")
    tree_restoration_multiplier: float = Field(0.0, alias="treeRestorationMultiplier")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, raw: object) -> object:
        if not isinstance(raw, dict):
            return raw
        aliases = {
            field.alias: name for name, field in cls.model_fields.items() if field.alias
        }
        normalized: dict[str, float] = {}
        for key, val in raw.items():
            name = aliases.get(key, key)
            if name not in LEVER_BOUNDS:
                continue
            try:
                fval = float(val)
            except (TypeError, ValueError):
                fval = 0.0
            if math.isnan(fval) or math.isinf(fval):
                fval = 0.0
            lo, hi = LEVER_BOUNDS[name]
            normalized[name] = max(lo, min(hi, fval))
        return normalized


class PolicyOutcome(BaseModel):
    model_config = {"frozen": True}

    levers: PolicyLevers
    env_gain: int
    struct_gain: int
    fragility_reduction: int
    before: dict[str, int]
    after: dict[str, int]
    resilience_delta: int
    recovery_2050: int
    prevented_degradation_2040: float
    category_before: str
    category_after: str


def apply_policy(scores: ScoreSet, levers: PolicyLevers) -> tuple[ScoreSet, int, int, int]:
    """Returns (new_scores, env_gain, struct_gain, fragility_reduction)."""
    co2 = levers.co2_reduction_pct
    renew = levers.renewable_adoption_pct
    air = levers.air_quality_improvement_pct
    trees = levers.tree_restoration_multiplier

    env_gain = round_half_up(co2 * 0.18 + renew * 0.14 + air * 0.12 + trees * 0.10)
    struct_gain = round_half_up(renew * 0.08 + co2 * 0.04)
    frag_reduction = round_half_up((env_gain + struct_gain) * 0.4)

    new_env = min(100, scores.env_score + env_gain)
    new_struct = min(100, scores.struct_score + struct_gain)
    new_fragility = max(0, scores.fragility - frag_reduction)
    new_resilience = min(100, composite_resilience(new_env, new_struct, new_fragility))

    return (
        ScoreSet(new_env, new_struct, new_fragility, new_resilience),
        env_gain,
        struct_gain,
        frag_reduction,
    )


def simulate_policy(scores: ScoreSet, levers: PolicyLevers | None = None) -> PolicyOutcome:
    if levers is None:
        levers = PolicyLevers()
    after, env_gain, struct_gain, frag_reduction = apply_policy(scores, levers)
    recovery = min(
        100,
        after.resilience
        + round_half_up(levers.co2_reduction_pct * 0.08 + levers.renewable_adoption_pct * 0.10),
    )
    return PolicyOutcome(
        levers=levers,
        env_gain=env_gain,
        struct_gain=struct_gain,
        fragility_reduction=frag_reduction,
        before=scores.to_dict(),
        after=after.to_dict(),
        resilience_delta=after.resilience - scores.resilience,
        recovery_2050=recovery,
        prevented_degradation_2040=round(levers.co2_reduction_pct * 0.3, 1),
        category_before=classify(scores.resilience).label,
        category_after=classify(after.resilience).label,
    )
