"""
resilience.projection — Trajectory projector and derived long-range views.

Pure-computation module. Zero I/O. Zero randomness.

    gdp_lift       = gdp_growth * 0.15 * years
    co2_drag       = (0.3 if co2_per_capita > 5 else 0.1) * years
    fragility_risk = 0.2 * years if fragility(dataset) > 30 else 0
    projected      = clamp(0, 100, round(base + gdp_lift - co2_drag - fragility_risk))

project_score(base, data, 0) == base for any integer base.
"""

from __future__ import annotations

from typing import Any

from resilience.constants import BASE_YEAR, HORIZON_YEARS, clamp, round_half_up
from resilience.fallback import EffectiveDataset
from resilience.scoring import ScoreSet, calc_scores, classify

HIGH_EMITTER_CO2 = 5.0
FRAGILITY_RISK_THRESHOLD = 30

MILESTONE_YEARS: tuple[int, ...] = (0, 5, 15, 25)
BAND_YEARS: tuple[int, ...] = (0, 3, 5, 8, 10, 13, 15, 18, 20, 23, 25)
GENERATION_YEARS: tuple[int, ...] = (0, 5, 10, 15, 20, 25)

_MILESTONE_LABELS = {
    0: "Present State",
    5: "Near Term",
    15: "Mid Century",
    25: "Long Term",
}


def gdp_lift(data: EffectiveDataset, years: float) -> float:
    return data.gdp_growth_pct * 0.15 * years


def co2_drag(data: EffectiveDataset, years: float) -> float:
    rate = 0.3 if data.co2_per_capita > HIGH_EMITTER_CO2 else 0.1
    return rate * years


def fragility_risk(data: EffectiveDataset, years: float) -> float:
    if calc_scores(data).fragility > FRAGILITY_RISK_THRESHOLD:
        return 0.2 * years
    return 0.0


def project_score(base_score: int, data: EffectiveDataset, years: float) -> int:
    """Project base_score `years` into the future under the fixed drift formula."""
    if years < 0:
        raise ValueError(f"years must be >= 0, got {years!r}")
    if years == 0:
        # Identity holds even for an unclamped resilience outside [0, 100].
        return int(base_score)
    raw = base_score + gdp_lift(data, years) - co2_drag(data, years) - fragility_risk(data, years)
    return int(clamp(round_half_up(raw), 0, 100))


# ---------------------------------------------------------------------------
# Milestone trajectory
# ---------------------------------------------------------------------------

def trajectory(data: EffectiveDataset, scores: ScoreSet | None = None) -> dict[str, Any]:
    """2025 → 2050 milestones plus the 25-year drivers."""
    if scores is None:
        scores = calc_scores(data)
    base = scores.resilience

    milestones = []
    for years in MILESTONE_YEARS:
        score = project_score(base, data, years)
        category = classify(score)
        milestones.append({
            "year": BASE_YEAR + years,
            "years_offset": years,
            "label": _MILESTONE_LABELS[years],
            "score": score,
            "category": category.label,
            "color": category.color,
            "delta_vs_present": score - base,
        })

    s_end = project_score(base, data, HORIZON_YEARS)
    return {
        "present": base,
        "milestones": milestones,
        "score_2050": s_end,
        "annual_rate": round((s_end - base) / HORIZON_YEARS, 2),
        "delta_25y": s_end - base,
        "gdp_lift_25y": round(gdp_lift(data, HORIZON_YEARS), 1),
        "co2_drag_25y": round(co2_drag(data, HORIZON_YEARS), 1),
    }


def scenario_bands(data: EffectiveDataset, scores: ScoreSet | None = None) -> list[dict[str, Any]]:
    """Baseline / optimistic / pessimistic series over the horizon."""
    if scores is None:
        scores = calc_scores(data)
    rows = []
    for years in BAND_YEARS:
        baseline = project_score(scores.resilience, data, years)
        rows.append({
            "year": BASE_YEAR + years,
            "baseline": baseline,
            "optimistic": min(100, round_half_up(baseline + years * 0.4)),
            "pessimistic": max(0, round_half_up(baseline - years * 0.35)),
        })
    return rows


# ---------------------------------------------------------------------------
# Generational outlook
# ---------------------------------------------------------------------------

def generational_headline(resilience: int) -> str:
    if resilience >= 70:
        return "Secure"
    if resilience >= 55:
        return "Fragile"
    if resilience >= 40:
        return "Critical"
    return "Collapse Risk"


def generational_outlook(data: EffectiveDataset, scores: ScoreSet | None = None) -> dict[str, Any]:
    """What a child born in the base year lives through at ages 5, 15 and 25."""
    if scores is None:
        scores = calc_scores(data)

    life = []
    for age in (5, 15, 25):
        score = project_score(scores.resilience, data, age)
        life.append({
            "year": BASE_YEAR + age,
            "age": age,
            "score": score,
            "category": classify(score).label,
        })

    env_rate = 0.4 if data.co2_per_capita > HIGH_EMITTER_CO2 else 0.15
    series = [
        {
            "year": BASE_YEAR + years,
            "resilience": project_score(scores.resilience, data, years),
            "env_trajectory": max(0, round_half_up(scores.env_score - years * env_rate)),
            "struct_trajectory": min(
                100, round_half_up(scores.struct_score + years * data.gdp_growth_pct * 0.12)
            ),
        }
        for years in GENERATION_YEARS
    ]

    return {
        "headline": generational_headline(scores.resilience),
        "life_milestones": life,
        "series": series,
        "strong_growth": data.gdp_growth_pct >= 5,
        "poor_air": data.air_quality_score < 50,
    }
