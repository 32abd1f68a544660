#!/usr/bin/env python3
"""
resilience.api — Climate Resilience Lab API server.

Exposes the selection pipeline (fetch → merge → score) and every simulator
as JSON. Every country endpoint loads its own immutable AnalysisContext
(concurrent loads of one country share a fetch); no request touches another
client's state. Simulators are recomputed on every request.

Endpoints:
    GET  /health                          → Liveness probe
    GET  /countries                       → Supported countries (static table)
    GET  /country/{country}               → Dataset, source status, scores, category
    GET  /country/{country}/projection    → 2025–2050 milestones + scenario bands
    GET  /country/{country}/generational  → Generational outlook
    POST /country/{country}/disaster      → Disaster impact {"scenario_id": str | null}
    POST /country/{country}/policy        → Policy levers → before/after
    GET  /country/{country}/ripple        → Cross-border ripple effect
    GET  /disasters                       → Disaster catalog
    GET  /rankings                        → Multi-country comparison

Environment variables:
    ENV                    — "dev" or "prod" (default: "prod")
    ALLOWED_ORIGINS        — Comma-separated extra CORS origins
    ENABLE_DOCS            — "1" to force-enable /docs in prod
    FETCH_TIMEOUT_SECONDS  — Per-fetch timeout (default: 10)
    OPENAQ_API_KEY         — OpenAQ v3 key (air quality falls back without it)

Requires: fastapi, uvicorn, slowapi, httpx
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from resilience.aggregate import benchmark, comparison
from resilience.constants import COUNTRY_TABLE, UnknownCountryError
from resilience.disaster import catalog, simulate_disaster
from resilience.fetchers import HttpIndicatorFetcher
from resilience.policy import PolicyLevers, simulate_policy
from resilience.projection import generational_outlook, scenario_bands, trajectory
from resilience.ripple import simulate_ripple
from resilience.scoring import score_breakdown
from resilience.security import RequestIdMiddleware, SecurityHeadersMiddleware
from resilience.session import AnalysisContext, SelectionSession

# ---------------------------------------------------------------------------
# Logging configuration: structured JSON to stdout
# ---------------------------------------------------------------------------

_log_level = logging.DEBUG if os.getenv("ENV", "prod") == "dev" else logging.INFO
logging.basicConfig(
    level=_log_level,
    format="%(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("resilience.api")

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

ENV = os.getenv("ENV", "prod").lower().strip()
ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "").strip()
ENABLE_DOCS = os.getenv("ENABLE_DOCS", "").strip() == "1"

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
    storage_uri="memory://",
    strategy="fixed-window",
)


def _build_docs_kwargs() -> dict[str, Any]:
    if ENV == "prod" and not ENABLE_DOCS:
        return {"docs_url": None, "redoc_url": None, "openapi_url": None}
    return {"docs_url": "/docs", "redoc_url": "/redoc"}


# ---------------------------------------------------------------------------
# Lifespan: one fetcher and one loader per process
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the session used as a shared loader (load() only, no selection).

    A fetcher already placed on app.state (tests, offline runs) is used
    as-is; otherwise an HttpIndicatorFetcher is created and closed on
    shutdown.
    """
    injected = getattr(app.state, "fetcher", None)
    fetcher = injected or HttpIndicatorFetcher()
    app.state.session = SelectionSession(fetcher)

    logger.info(json.dumps({
        "event": "startup",
        "env": ENV,
        "fetcher": type(fetcher).__name__,
        "cors_origins": len(_CORS_ORIGINS),
        "docs_enabled": ENABLE_DOCS or ENV == "dev",
    }))

    yield

    if injected is None:
        await fetcher.aclose()
    logger.info(json.dumps({"event": "shutdown"}))


app = FastAPI(
    title="Climate Resilience Lab API",
    description="Composite climate resilience index and what-if simulations.",
    version=API_VERSION,
    lifespan=_lifespan,
    **_build_docs_kwargs(),
)
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# CORS: read-mostly API, no credentials
# ---------------------------------------------------------------------------

_CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

if ALLOWED_ORIGINS_RAW:
    for _o in ALLOWED_ORIGINS_RAW.split(","):
        _o = _o.strip()
        if _o and _o not in _CORS_ORIGINS:
            _CORS_ORIGINS.append(_o)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)

# Starlette runs middleware in reverse registration order:
# GZip → RequestId → SecurityHeaders → CORS
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=(ENV == "prod"))
app.add_middleware(RequestIdMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": "60"},
    )


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(json.dumps({
        "event": "unhandled_exception",
        "exception_type": type(exc).__name__,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "path": request.url.path,
    }))
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class DisasterRequest(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    scenario_id: Optional[str] = Field(None, alias="scenarioId")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _json_body(request: Request) -> dict[str, Any]:
    """Decode a JSON object body. Empty body → {}. Anything else → 400."""
    if not await request.body():
        return {}
    try:
        raw = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body is not valid JSON.") from None
    if not isinstance(raw, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object.")
    return raw


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg', 'Validation failed')}" if field else err.get("msg", "")


async def _context(request: Request, country: str) -> AnalysisContext:
    """Load the country's context for this request. 404 outside the supported set.

    Goes through SelectionSession.load(), never select(): a request neither
    reads nor changes a selection shared with other clients.
    """
    session: SelectionSession = request.app.state.session
    try:
        return await session.load(country)
    except UnknownCountryError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", include_in_schema=False)
async def health(request: Request) -> JSONResponse:
    """Liveness probe. No fetches, no computation."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "version": API_VERSION,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


@app.get("/countries")
@limiter.limit("60/minute")
async def list_countries(request: Request) -> Any:
    return [
        {
            "name": r.profile.name,
            "iso2": r.profile.iso2,
            "iso3": r.profile.iso3,
            "city": r.profile.city,
            "population_millions": r.profile.population_millions,
            "co2_per_capita": r.profile.co2_per_capita,
            "forest_cover_pct": r.profile.forest_cover_pct,
            "renewables_pct": r.profile.renewables_pct,
            "fallback": {
                "gdp": r.fallback.gdp,
                "gdp_growth_pct": r.fallback.gdp_growth_pct,
                "air_quality_score": r.fallback.air_quality_score,
            },
        }
        for r in COUNTRY_TABLE
    ]


@app.get("/country/{country}")
@limiter.limit("30/minute")
async def get_country_analysis(country: str, request: Request) -> Any:
    """Fetch both sources, merge, score."""
    ctx = await _context(request, country)
    scores = ctx.scores
    body = ctx.to_dict()
    body["breakdown"] = score_breakdown(ctx.dataset, scores)
    body["benchmark"] = benchmark(ctx.country, scores.resilience)
    return body


@app.get("/country/{country}/projection")
@limiter.limit("60/minute")
async def get_projection(country: str, request: Request) -> Any:
    ctx = await _context(request, country)
    scores = ctx.scores
    return {
        "country": ctx.country,
        "trajectory": trajectory(ctx.dataset, scores),
        "bands": scenario_bands(ctx.dataset, scores),
    }


@app.get("/country/{country}/generational")
@limiter.limit("60/minute")
async def get_generational(country: str, request: Request) -> Any:
    ctx = await _context(request, country)
    return {"country": ctx.country, **generational_outlook(ctx.dataset, ctx.scores)}


@app.post("/country/{country}/disaster")
@limiter.limit("60/minute")
async def post_disaster(country: str, request: Request) -> Any:
    """Body: {"scenario_id": str | null}. Null or missing → no active scenario."""
    raw = await _json_body(request)
    try:
        body = DisasterRequest.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_first_error(exc)) from None

    ctx = await _context(request, country)
    try:
        outcome = simulate_disaster(ctx.dataset, body.scenario_id, ctx.scores)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from None
    return {"country": ctx.country, **outcome.model_dump()}


@app.post("/country/{country}/policy")
@limiter.limit("60/minute")
async def post_policy(country: str, request: Request) -> Any:
    """Body: PolicyLevers (snake_case or camelCase). Out-of-range levers are clamped."""
    raw = await _json_body(request)
    try:
        levers = PolicyLevers.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=_first_error(exc)) from None

    ctx = await _context(request, country)
    outcome = simulate_policy(ctx.scores, levers)
    logger.info(json.dumps({
        "event": "policy_simulated",
        "request_id": getattr(request.state, "request_id", "unknown"),
        "country": ctx.country,
        "resilience_delta": outcome.resilience_delta,
    }))
    return {"country": ctx.country, **outcome.model_dump()}


@app.get("/country/{country}/ripple")
@limiter.limit("60/minute")
async def get_ripple(country: str, request: Request) -> Any:
    ctx = await _context(request, country)
    return {"country": ctx.country, **simulate_ripple(ctx.scores.resilience).model_dump()}


@app.get("/disasters")
@limiter.limit("60/minute")
async def list_disasters(request: Request) -> Any:
    return catalog()


@app.get("/rankings")
@limiter.limit("60/minute")
async def get_rankings(request: Request) -> Any:
    """Optional ?selected=<name> flags one row of the ranking."""
    return comparison(selected=request.query_params.get("selected"))


# ---------------------------------------------------------------------------
# Entry point (development only)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    os.environ.setdefault("ENV", "dev")
    uvicorn.run(app, host="0.0.0.0", port=8000)  # noqa: S104
