"""
resilience.fallback — Field-granular merge of live observations with calibrated fallbacks.

Pure-computation module. Zero I/O.

Design contract:
    - merge() is total: every numeric field the scoring engine reads is
      present on the returned EffectiveDataset, whatever the live side holds.
    - Each of {gdp, gdp_growth_pct, air_quality_score} is resolved on its
      own. A partial live response is never discarded wholesale.
    - Source status is reported per source, keyed on that source's primary
      field (gdp for the economic source, air_quality_score for air quality).
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from typing import Any

from resilience.constants import CountryProfile, CountryRecord, FallbackEstimate


class SourceStatus(str, enum.Enum):
    PENDING = "pending"
    LIVE = "live"
    FALLBACK = "fallback"


# ---------------------------------------------------------------------------
# Live readings: one per source, normalized by the fetchers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EconomicReading:
    gdp: float | None = None
    gdp_growth_pct: float | None = None
    gdp_year: str = "N/A"


@dataclass(frozen=True, slots=True)
class AirQualityReading:
    air_quality_score: float | None = None
    pm25: float | None = None
    station_name: str | None = None
    station_count: int | None = None


@dataclass(frozen=True, slots=True)
class LiveObservation:
    """Ephemeral result of one fetch event. Any field may be None (absent)."""

    gdp: float | None = None
    gdp_growth_pct: float | None = None
    gdp_year: str | None = None
    air_quality_score: float | None = None
    pm25: float | None = None
    station_name: str | None = None
    station_count: int | None = None

    @classmethod
    def from_readings(
        cls,
        economic: EconomicReading | None,
        air: AirQualityReading | None,
    ) -> LiveObservation:
        economic = economic or EconomicReading()
        air = air or AirQualityReading()
        return cls(
            gdp=_valid_number(economic.gdp),
            gdp_growth_pct=_valid_number(economic.gdp_growth_pct),
            gdp_year=economic.gdp_year,
            air_quality_score=_valid_number(air.air_quality_score),
            pm25=_valid_number(air.pm25),
            station_name=air.station_name,
            station_count=air.station_count,
        )


def _valid_number(value: Any) -> float | None:
    """A field is either a finite number or absent; nothing in between."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


# ---------------------------------------------------------------------------
# EffectiveDataset
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EffectiveDataset:
    """CountryProfile plus the resolved values of the three fetched fields."""

    profile: CountryProfile
    gdp: float
    gdp_growth_pct: float
    air_quality_score: float
    gdp_year: str | None = None
    pm25: float | None = None
    station_name: str | None = None
    station_count: int | None = None

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def co2_per_capita(self) -> float:
        return self.profile.co2_per_capita

    @property
    def forest_cover_pct(self) -> float:
        return self.profile.forest_cover_pct

    @property
    def renewables_pct(self) -> float:
        return self.profile.renewables_pct

    def with_values(self, **changes: Any) -> EffectiveDataset:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        p = self.profile
        return {
            "country": p.name,
            "iso2": p.iso2,
            "iso3": p.iso3,
            "city": p.city,
            "population_millions": p.population_millions,
            "co2_per_capita": p.co2_per_capita,
            "forest_cover_pct": p.forest_cover_pct,
            "renewables_pct": p.renewables_pct,
            "gdp": self.gdp,
            "gdp_growth_pct": self.gdp_growth_pct,
            "air_quality_score": self.air_quality_score,
            "gdp_year": self.gdp_year,
            "pm25": self.pm25,
            "station_name": self.station_name,
            "station_count": self.station_count,
        }


def _pick(live: float | None, fallback: float) -> float:
    return fallback if live is None else live


def merge(
    live: LiveObservation | None,
    fallback: FallbackEstimate,
    profile: CountryProfile,
) -> EffectiveDataset:
    """Resolve each fetched field independently: live if present, else fallback."""
    live = live or LiveObservation()
    return EffectiveDataset(
        profile=profile,
        gdp=_pick(live.gdp, fallback.gdp),
        gdp_growth_pct=_pick(live.gdp_growth_pct, fallback.gdp_growth_pct),
        air_quality_score=_pick(live.air_quality_score, fallback.air_quality_score),
        gdp_year=live.gdp_year,
        pm25=live.pm25,
        station_name=live.station_name,
        station_count=live.station_count,
    )


def merge_record(live: LiveObservation | None, record: CountryRecord) -> EffectiveDataset:
    return merge(live, record.fallback, record.profile)


def fallback_dataset(record: CountryRecord) -> EffectiveDataset:
    """The dataset a country gets when neither source answered."""
    return merge(None, record.fallback, record.profile)


def source_statuses(live: LiveObservation | None) -> tuple[SourceStatus, SourceStatus]:
    """(economic_status, air_quality_status) after a completed fetch."""
    if live is None:
        return SourceStatus.FALLBACK, SourceStatus.FALLBACK
    economic = SourceStatus.LIVE if live.gdp is not None else SourceStatus.FALLBACK
    air = SourceStatus.LIVE if live.air_quality_score is not None else SourceStatus.FALLBACK
    return economic, air
