"""
resilience.ripple — Cross-border ripple effect of one country's resilience.

    instability_factor = max(0, (60 - resilience) * 0.12)
    global_simulated   = max(0, round(62 - instability_factor))
    regional_impact    = 4.2 if resilience < 50 else 2.3 if resilience < 65 else 0.9

The neighbor impact table is static and does not depend on the analysed
country or its score.
"""

from __future__ import annotations

from pydantic import BaseModel

from resilience.constants import GLOBAL_STABILITY_BASELINE, RIPPLE_TARGETS, round_half_up

SYSTEMIC_RISK_THRESHOLD = 60


class RippleImpact(BaseModel):
    model_config = {"frozen": True}

    name: str
    trade_exposure: str
    climate_spillover: str
    delta: float
    reason: str


class RippleOutcome(BaseModel):
    model_config = {"frozen": True}

    resilience: int
    global_baseline: int
    instability_factor: float
    global_simulated: int
    regional_impact_pct: float
    poses_systemic_risk: bool
    affected: list[RippleImpact]


def instability_factor(resilience: int) -> float:
    return max(0.0, (SYSTEMIC_RISK_THRESHOLD - resilience) * 0.12)


def regional_impact_pct(resilience: int) -> float:
    if resilience < 50:
        return 4.2
    if resilience < 65:
        return 2.3
    return 0.9


def simulate_ripple(resilience: int) -> RippleOutcome:
    factor = instability_factor(resilience)
    return RippleOutcome(
        resilience=resilience,
        global_baseline=GLOBAL_STABILITY_BASELINE,
        instability_factor=round(factor, 2),
        global_simulated=max(0, round_half_up(GLOBAL_STABILITY_BASELINE - factor)),
        regional_impact_pct=regional_impact_pct(resilience),
        poses_systemic_risk=resilience < SYSTEMIC_RISK_THRESHOLD,
        affected=[
            RippleImpact(
                name=t.name,
                trade_exposure=t.trade_exposure,
                climate_spillover=t.climate_spillover,
                delta=t.delta,
                reason=t.reason,
            )
            for t in RIPPLE_TARGETS
        ],
    )
