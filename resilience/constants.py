"""
resilience.constants — Single source of truth for the resilience lab's static tables.

Every module that needs a country profile, a calibrated fallback value,
a disaster delta or a ripple target MUST import it from here.
The multi-country comparison and the fallback resolver read the SAME
table; there is no second copy of the per-country numbers.

All tables are built once at import time and are never mutated.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity.

    The calibrated weights were tuned against this rule, not against
    Python's banker's rounding: round_half_up(52.5) == 53 and
    round_half_up(-2.5) == -2.
    """
    return int(math.floor(value + 0.5))


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return max(lo, min(hi, value))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
"""Upper bound for a single indicator fetch. Applied to the httpx client
and as an asyncio guard around each fetch."""

WORLD_BANK_BASE_URL: str = os.getenv(
    "WORLD_BANK_BASE_URL", "https://api.worldbank.org/v2"
).rstrip("/")

OPENAQ_BASE_URL: str = os.getenv("OPENAQ_BASE_URL", "https://api.openaq.org/v3").rstrip("/")

OPENAQ_API_KEY: str | None = os.getenv("OPENAQ_API_KEY", "").strip() or None

# ---------------------------------------------------------------------------
# Static record types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CountryProfile:
    """Static, non-fetched attributes of a supported country."""

    name: str
    iso2: str
    iso3: str
    co2_per_capita: float
    forest_cover_pct: float
    renewables_pct: float
    population_millions: float
    city: str


@dataclass(frozen=True, slots=True)
class FallbackEstimate:
    """Calibrated values used whenever the live source has nothing."""

    gdp: float
    gdp_growth_pct: float
    air_quality_score: float


@dataclass(frozen=True, slots=True)
class CountryRecord:
    profile: CountryProfile
    fallback: FallbackEstimate


@dataclass(frozen=True, slots=True)
class DisasterScenario:
    id: str
    name: str
    description: str
    env_drop: int
    struct_drop: int
    gdp_shock_pct: float
    fragility_increase: int
    long_term_delta: int
    recovery_rating: str
    explanation: str


@dataclass(frozen=True, slots=True)
class RippleTarget:
    name: str
    trade_exposure: str
    climate_spillover: str
    delta: float
    reason: str


@dataclass(frozen=True, slots=True)
class Category:
    label: str
    color: str


# ---------------------------------------------------------------------------
# Canonical country table: 8 countries, canonical order
# ---------------------------------------------------------------------------


def _record(
    name: str, iso2: str, iso3: str, co2: float, forest: float, renewables: float,
    population: float, city: str, gdp: float, growth: float, air: float,
) -> CountryRecord:
    return CountryRecord(
        profile=CountryProfile(
            name=name,
            iso2=iso2,
            iso3=iso3,
            co2_per_capita=co2,
            forest_cover_pct=forest,
            renewables_pct=renewables,
            population_millions=population,
            city=city,
        ),
        fallback=FallbackEstimate(gdp=gdp, gdp_growth_pct=growth, air_quality_score=air),
    )


COUNTRY_TABLE: tuple[CountryRecord, ...] = (
    _record("India", "IN", "IND", 2.4, 24, 20, 1428, "Delhi", 2947, 6.8, 42),
    _record("USA", "US", "USA", 14.9, 33, 22, 340, "Los Angeles", 27360, 2.5, 72),
    _record("China", "CN", "CHN", 8.1, 23, 31, 1412, "Beijing", 17795, 5.2, 48),
    _record("Germany", "DE", "DEU", 7.8, 32, 46, 84, "Berlin", 4456, 1.2, 82),
    _record("Brazil", "BR", "BRA", 2.3, 59, 83, 215, "Sao Paulo", 2173, 3.1, 68),
    _record("Bangladesh", "BD", "BGD", 0.6, 11, 4, 170, "Dhaka", 421, 5.8, 35),
    _record("Nigeria", "NG", "NGA", 0.6, 25, 13, 223, "Lagos", 477, 2.9, 38),
    _record("Australia", "AU", "AUS", 14.5, 19, 35, 26, "Sydney", 1708, 2.0, 85),
)
"""Profile + calibrated fallback per country. Table order is the tie-break
order for rankings."""

SUPPORTED_COUNTRIES: tuple[str, ...] = tuple(r.profile.name for r in COUNTRY_TABLE)

_BY_NAME: dict[str, CountryRecord] = {r.profile.name.upper(): r for r in COUNTRY_TABLE}
_BY_ISO2: dict[str, CountryRecord] = {r.profile.iso2: r for r in COUNTRY_TABLE}


class UnknownCountryError(KeyError):
    """Raised when a selection is outside the supported set."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(identifier)

    def __str__(self) -> str:
        return (
            f"Country '{self.identifier}' is not supported. "
            f"Valid: {', '.join(SUPPORTED_COUNTRIES)}."
        )


def get_country(identifier: str) -> CountryRecord:
    """Look up a country by name or ISO2 code, case-insensitively."""
    key = str(identifier).strip().upper()
    record = _BY_NAME.get(key) or _BY_ISO2.get(key)
    if record is None:
        raise UnknownCountryError(identifier)
    return record


# ---------------------------------------------------------------------------
# Category bands: (upper bound inclusive, category), ascending
# ---------------------------------------------------------------------------

CATEGORY_BANDS: tuple[tuple[int, Category], ...] = (
    (25, Category("Collapse Risk", "#dc2626")),
    (40, Category("Critical Vulnerability", "#f97316")),
    (60, Category("Fragile System", "#eab308")),
    (80, Category("Stable", "#22c55e")),
)
CATEGORY_TOP: Category = Category("Highly Resilient", "#10b981")

# ---------------------------------------------------------------------------
# Disaster catalog
# ---------------------------------------------------------------------------

DISASTER_CATALOG: tuple[DisasterScenario, ...] = (
    DisasterScenario(
        id="drought",
        name="Mega Drought",
        description="Multi-year rainfall deficit, agricultural collapse, water scarcity",
        env_drop=14,
        struct_drop=9,
        gdp_shock_pct=4.2,
        fragility_increase=18,
        long_term_delta=-12,
        recovery_rating="High Difficulty",
        explanation=(
            "A mega drought collapses the environmental score through soil degradation, "
            "biodiversity loss, and water table depletion. Agricultural GDP contraction "
            "widens the structural-environmental imbalance, increasing fragility. "
            "Recovery requires 8-15 years of sustained investment."
        ),
    ),
    DisasterScenario(
        id="flood",
        name="Catastrophic Flood",
        description="500-year flood event, infrastructure destruction, displacement",
        env_drop=11,
        struct_drop=16,
        gdp_shock_pct=7.8,
        fragility_increase=22,
        long_term_delta=-15,
        recovery_rating="Very High Difficulty",
        explanation=(
            "Catastrophic floods primarily destroy structural capacity: transport, housing "
            "and industrial assets. Infrastructure replacement costs consume fiscal reserves "
            "needed for climate adaptation, weakening the 2050 trajectory significantly."
        ),
    ),
    DisasterScenario(
        id="tsunami",
        name="Major Tsunami",
        description="Coastal megadisaster, port destruction, regional disruption",
        env_drop=8,
        struct_drop=18,
        gdp_shock_pct=11.3,
        fragility_increase=25,
        long_term_delta=-18,
        recovery_rating="Extreme Difficulty",
        explanation=(
            "A major tsunami delivers the highest structural shock, destroying coastal "
            "economic infrastructure and trade capacity. The structural-environmental "
            "imbalance increases dramatically as environmental scores recover faster "
            "than economic rebuilding."
        ),
    ),
)

DISASTERS_BY_ID: dict[str, DisasterScenario] = {d.id: d for d in DISASTER_CATALOG}

# ---------------------------------------------------------------------------
# Ripple targets: static, independent of the analysed country
# ---------------------------------------------------------------------------

RIPPLE_TARGETS: tuple[RippleTarget, ...] = (
    RippleTarget("Bangladesh", "High", "Very High", -2.8,
                 "Shared monsoon system, remittance dependency"),
    RippleTarget("Nepal", "Very High", "High", -2.1,
                 "River basin dependency, trade corridor reliance"),
    RippleTarget("Sri Lanka", "High", "Moderate", -1.4,
                 "Regional trade integration, tourism flows"),
    RippleTarget("Pakistan", "Moderate", "High", -1.9,
                 "Shared water resources, cross-border climate events"),
    RippleTarget("Myanmar", "Moderate", "Moderate", -1.2,
                 "Agricultural supply chain exposure"),
    RippleTarget("EU (aggregate)", "Moderate", "Low", -0.4,
                 "Supply chain disruption, carbon border adjustment"),
)

GLOBAL_STABILITY_BASELINE: int = 62

# ---------------------------------------------------------------------------
# Benchmarks
# ---------------------------------------------------------------------------

GLOBAL_AVERAGE_RESILIENCE: int = 54

REGIONAL_AVERAGES: dict[str, int] = {
    "USA": 72, "Germany": 72, "Australia": 72,
    "India": 48, "China": 48, "Bangladesh": 48, "Nigeria": 48,
}
DEFAULT_REGIONAL_AVERAGE: int = 52

# ---------------------------------------------------------------------------
# Policy lever bounds: (min, max)
# ---------------------------------------------------------------------------

LEVER_BOUNDS: dict[str, tuple[float, float]] = {
    "co2_reduction_pct": (0.0, 80.0),
    "renewable_adoption_pct": (0.0, 80.0),
    "air_quality_improvement_pct": (0.0, 60.0),
    "tree_restoration_multiplier": (0.0, 5.0),
}

# ---------------------------------------------------------------------------
# Projection horizon
# ---------------------------------------------------------------------------

BASE_YEAR: int = 2025
HORIZON_YEARS: int = 25
