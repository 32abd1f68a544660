"""
resilience.fetchers — Live indicator fetchers (World Bank, OpenAQ v3).

Both fetchers FAIL CLOSED: any transport error, non-2xx status, undecodable
body or unexpected payload shape yields an all-absent reading. Nothing is
ever raised into the caller. The session treats an absent primary field as
a fallback source.

Economic source (World Bank indicators API, no key required):
    GET {WORLD_BANK_BASE_URL}/country/{ISO3}/indicator/NY.GDP.MKTP.CD?format=json&mrv=1
    GET {WORLD_BANK_BASE_URL}/country/{ISO3}/indicator/NY.GDP.MKTP.KD.ZG?format=json&mrv=1
    gdp        = round(value / 1e9)      (USD billions)
    gdp_growth = round(value, 2)         (percent)

Air-quality source (OpenAQ v3, X-API-Key when configured):
    GET {OPENAQ_BASE_URL}/locations?iso={ISO2}&parameters_id=2&limit=10
    avg_pm25    = mean of every non-zero sensors[].summary.avg where
                  parameter.name == "pm25" (malformed locations/sensors skipped)
    air_quality = clamp(0, 100, round(100 - avg_pm25 / 75 * 100))
    (WHO-style scale: 0 µg/m³ → 100, 75+ µg/m³ → 0)

Requires: httpx
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any, Protocol

import httpx

from resilience.constants import (
    FETCH_TIMEOUT_SECONDS,
    OPENAQ_API_KEY,
    OPENAQ_BASE_URL,
    WORLD_BANK_BASE_URL,
    clamp,
    round_half_up,
)
from resilience.fallback import AirQualityReading, EconomicReading

logger = logging.getLogger("resilience.fetchers")

GDP_INDICATOR = "NY.GDP.MKTP.CD"
GDP_GROWTH_INDICATOR = "NY.GDP.MKTP.KD.ZG"
PM25_PARAMETER_ID = 2
PM25_ZERO_SCORE = 75.0
OPENAQ_LOCATION_LIMIT = 10


class IndicatorFetcher(Protocol):
    """What the selection session needs from a data source."""

    async def fetch_economic(self, iso3: str) -> EconomicReading: ...

    async def fetch_air_quality(self, iso2: str) -> AirQualityReading: ...


# ---------------------------------------------------------------------------
# Payload parsing: never raises
# ---------------------------------------------------------------------------

def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


def world_bank_latest(payload: Any) -> tuple[float | None, str | None]:
    """Extract (value, date) of the most recent observation.

    The World Bank answers ``[page_meta, [observation, ...]]``; an error
    answer is ``[{"message": [...]}]`` and is treated as absent.
    """
    if not isinstance(payload, list) or len(payload) < 2:
        return None, None
    rows = payload[1]
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
        return None, None
    first = rows[0]
    date = first.get("date")
    return _number(first.get("value")), str(date) if date else None


def parse_world_bank(gdp_payload: Any, growth_payload: Any) -> EconomicReading:
    gdp_raw, gdp_date = world_bank_latest(gdp_payload)
    growth_raw, _ = world_bank_latest(growth_payload)
    return EconomicReading(
        gdp=round_half_up(gdp_raw / 1e9) if gdp_raw is not None else None,
        gdp_growth_pct=round(growth_raw, 2) if growth_raw is not None else None,
        gdp_year=gdp_date or "N/A",
    )


def pm25_to_score(avg_pm25: float) -> int:
    return int(clamp(round_half_up(100 - (avg_pm25 / PM25_ZERO_SCORE) * 100), 0, 100))


def parse_openaq(payload: Any) -> AirQualityReading:
    if not isinstance(payload, dict):
        return AirQualityReading()
    locations = payload.get("results")
    if not isinstance(locations, list) or not locations:
        return AirQualityReading()

    readings: list[float] = []
    for loc in locations:
        if not isinstance(loc, dict):
            continue
        sensors = loc.get("sensors")
        if not isinstance(sensors, list):
            continue
        for sensor in sensors:
            if not isinstance(sensor, dict):
                continue
            parameter = sensor.get("parameter") or {}
            summary = sensor.get("summary") or {}
            if not isinstance(parameter, dict) or not isinstance(summary, dict):
                continue
            if parameter.get("name") != "pm25":
                continue
            avg = _number(summary.get("avg"))
            # 0 means "no summary yet"; every other finite value counts.
            if avg is not None and avg != 0:
                readings.append(avg)

    if not readings:
        return AirQualityReading()

    avg_pm25 = sum(readings) / len(readings)
    first = locations[0] if isinstance(locations[0], dict) else {}
    name = first.get("name")
    return AirQualityReading(
        air_quality_score=pm25_to_score(avg_pm25),
        pm25=round(avg_pm25, 1),
        station_name=name if isinstance(name, str) and name else "Multiple stations",
        station_count=len(readings),
    )


# ---------------------------------------------------------------------------
# HTTP fetcher
# ---------------------------------------------------------------------------

class HttpIndicatorFetcher:
    """httpx-backed implementation of IndicatorFetcher.

    Pass an AsyncClient to share a connection pool (or to inject an
    httpx.MockTransport in tests). A client created here is owned here
    and released by aclose().
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        world_bank_url: str = WORLD_BANK_BASE_URL,
        openaq_url: str = OPENAQ_BASE_URL,
        openaq_api_key: str | None = OPENAQ_API_KEY,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self._world_bank_url = world_bank_url.rstrip("/")
        self._openaq_url = openaq_url.rstrip("/")
        self._openaq_api_key = openaq_api_key

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> Any:
        response = await self._client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def fetch_economic(self, iso3: str) -> EconomicReading:
        params = {"format": "json", "mrv": 1}
        base = f"{self._world_bank_url}/country/{iso3}/indicator"
        try:
            gdp_payload, growth_payload = await asyncio.gather(
                self._get_json(f"{base}/{GDP_INDICATOR}", params),
                self._get_json(f"{base}/{GDP_GROWTH_INDICATOR}", params),
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(json.dumps({
                "event": "fetch_failed",
                "source": "world_bank",
                "country": iso3,
                "error_type": type(exc).__name__,
                "error": str(exc),
            }))
            return EconomicReading()

        reading = parse_world_bank(gdp_payload, growth_payload)
        logger.debug(json.dumps({
            "event": "fetch_ok",
            "source": "world_bank",
            "country": iso3,
            "gdp": reading.gdp,
            "gdp_growth_pct": reading.gdp_growth_pct,
        }))
        return reading

    async def fetch_air_quality(self, iso2: str) -> AirQualityReading:
        params = {
            "iso": iso2,
            "parameters_id": PM25_PARAMETER_ID,
            "limit": OPENAQ_LOCATION_LIMIT,
            "order_by": "id",
            "sort_order": "desc",
        }
        headers = {"X-API-Key": self._openaq_api_key} if self._openaq_api_key else None
        try:
            payload = await self._get_json(f"{self._openaq_url}/locations", params, headers)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(json.dumps({
                "event": "fetch_failed",
                "source": "openaq",
                "country": iso2,
                "error_type": type(exc).__name__,
                "error": str(exc),
            }))
            return AirQualityReading()

        reading = parse_openaq(payload)
        logger.debug(json.dumps({
            "event": "fetch_ok",
            "source": "openaq",
            "country": iso2,
            "air_quality_score": reading.air_quality_score,
            "station_count": reading.station_count,
        }))
        return reading


class OfflineFetcher:
    """Answers every fetch with an all-absent reading (pure fallback mode)."""

    async def fetch_economic(self, iso3: str) -> EconomicReading:
        return EconomicReading()

    async def fetch_air_quality(self, iso2: str) -> AirQualityReading:
        return AirQualityReading()
