"""
tests/test_api.py — HTTP surface of the resilience API.

Runs the real app with an OfflineFetcher injected on app.state, so every
country resolves to its calibrated fallback values.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from resilience.api import app, limiter
from resilience.fallback import EconomicReading
from resilience.fetchers import OfflineFetcher
from resilience.session import SelectionSession


@pytest.fixture(scope="module")
def client() -> Iterator[TestClient]:
    limiter.enabled = False
    app.state.fetcher = OfflineFetcher()
    with TestClient(app) as c:
        yield c
    del app.state.fetcher
    limiter.enabled = True


# ---------------------------------------------------------------------------
# Static endpoints
# ---------------------------------------------------------------------------


class TestStatic:
    def test_health(self, client: TestClient):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
        assert r.headers["Cache-Control"] == "no-store"

    def test_countries(self, client: TestClient):
        r = client.get("/countries")
        assert r.status_code == 200
        names = [c["name"] for c in r.json()]
        assert names == [
            "India", "USA", "China", "Germany", "Brazil", "Bangladesh", "Nigeria", "Australia",
        ]
        assert r.headers["Cache-Control"] == "public, max-age=300"

    def test_disasters(self, client: TestClient):
        ids = [d["id"] for d in client.get("/disasters").json()]
        assert ids == ["drought", "flood", "tsunami"]

    def test_rankings(self, client: TestClient):
        body = client.get("/rankings", params={"selected": "Brazil"}).json()
        assert body["ranking"][0] == {
            "rank": 1, "name": "Brazil", "resilience": 63, "category": "Stable",
            "is_selected": True,
        }
        assert [r["name"] for r in body["ranking"]][-2:] == ["Nigeria", "Australia"]


# ---------------------------------------------------------------------------
# Country analysis
# ---------------------------------------------------------------------------


class TestCountry:
    def test_india_analysis(self, client: TestClient):
        r = client.get("/country/India")
        assert r.status_code == 200
        body = r.json()
        assert body["country"] == "India"
        assert body["scores"] == {
            "env_score": 54, "struct_score": 63, "fragility": 9, "resilience": 52,
        }
        assert body["category"]["label"] == "Fragile System"
        assert body["status"] == {"economic": "fallback", "air_quality": "fallback"}
        assert body["dataset"]["gdp"] == 2947
        assert body["benchmark"]["delta_vs_global"] == -2
        assert body["breakdown"]["resilience"] == 52

    def test_iso2_case_insensitive(self, client: TestClient):
        assert client.get("/country/de").json()["country"] == "Germany"

    def test_unknown_country_404(self, client: TestClient):
        r = client.get("/country/Atlantis")
        assert r.status_code == 404
        assert "not supported" in r.json()["detail"]

    def test_unknown_country_404_on_simulators(self, client: TestClient):
        assert client.get("/country/Atlantis/ripple").status_code == 404
        assert client.post("/country/Atlantis/policy", json={}).status_code == 404

    def test_projection(self, client: TestClient):
        body = client.get("/country/India/projection").json()
        assert [m["score"] for m in body["trajectory"]["milestones"]] == [52, 57, 66, 75]
        assert len(body["bands"]) == 11

    def test_generational(self, client: TestClient):
        body = client.get("/country/India/generational").json()
        assert body["headline"] == "Critical"
        assert [m["age"] for m in body["life_milestones"]] == [5, 15, 25]

    def test_ripple(self, client: TestClient):
        body = client.get("/country/India/ripple").json()
        assert body["global_simulated"] == 61
        assert len(body["affected"]) == 6


# ---------------------------------------------------------------------------
# Simulators
# ---------------------------------------------------------------------------


class TestDisasterEndpoint:
    def test_drought(self, client: TestClient):
        body = client.post("/country/India/disaster", json={"scenario_id": "drought"}).json()
        assert body["post"]["resilience"] == 40
        assert body["projected_2050"] == 63

    def test_camel_case_alias(self, client: TestClient):
        body = client.post("/country/India/disaster", json={"scenarioId": "flood"}).json()
        assert body["post"]["resilience"] == 37

    def test_no_scenario(self, client: TestClient):
        body = client.post("/country/India/disaster", json={}).json()
        assert body["post"] == body["pre"]

    def test_unknown_scenario_404(self, client: TestClient):
        r = client.post("/country/India/disaster", json={"scenario_id": "meteor"})
        assert r.status_code == 404
        assert "meteor" in r.json()["detail"]


class TestPolicyEndpoint:
    def test_golden(self, client: TestClient):
        r = client.post("/country/India/policy", json={
            "co2ReductionPct": 40,
            "renewableAdoptionPct": 30,
            "airQualityImprovementPct": 20,
            "treeRestorationMultiplier": 2,
        })
        assert r.status_code == 200
        body = r.json()
        assert body["after"]["resilience"] == 61
        assert body["recovery_2050"] == 67

    def test_empty_body_is_identity(self, client: TestClient):
        body = client.post("/country/USA/policy", json={}).json()
        assert body["before"] == body["after"]

    def test_out_of_range_clamped(self, client: TestClient):
        body = client.post("/country/India/policy", json={"co2_reduction_pct": 999}).json()
        assert body["levers"]["co2_reduction_pct"] == 80.0


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class TestMiddleware:
    def test_request_id_generated(self, client: TestClient):
        r = client.get("/health")
        assert len(r.headers["X-Request-ID"]) == 16

    def test_request_id_propagated(self, client: TestClient):
        r = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert r.headers["X-Request-ID"] == "abc123"

    def test_security_headers(self, client: TestClient):
        r = client.get("/country/India")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "DENY"
        assert r.headers["Cache-Control"] == "no-cache"


class TestBodyValidation:
    def test_invalid_json_400(self, client: TestClient):
        r = client.post(
            "/country/India/policy",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 400

    def test_non_object_body_400(self, client: TestClient):
        assert client.post("/country/India/disaster", json=["drought"]).status_code == 400

    def test_non_string_scenario_400(self, client: TestClient):
        assert client.post("/country/India/disaster", json={"scenario_id": 5}).status_code == 400


# ---------------------------------------------------------------------------
# Concurrent clients
# ---------------------------------------------------------------------------


class SlowIndiaFetcher(OfflineFetcher):
    """India's economic fetch takes a while; everything else answers at once."""

    async def fetch_economic(self, iso3: str) -> EconomicReading:
        if iso3 == "IND":
            await asyncio.sleep(0.2)
        return EconomicReading()


class TestConcurrentClients:
    @pytest.fixture
    def slow_app(self, client: TestClient) -> Iterator[None]:
        original = app.state.session
        app.state.session = SelectionSession(SlowIndiaFetcher())
        yield
        app.state.session = original

    @staticmethod
    def _gather(*paths: str) -> list[httpx.Response]:
        async def go():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                return await asyncio.gather(*(c.get(p) for p in paths))

        return asyncio.run(go())

    def test_different_countries_do_not_cancel_each_other(self, slow_app):
        india, usa = self._gather("/country/India", "/country/USA")
        assert india.status_code == 200
        assert usa.status_code == 200
        assert india.json()["scores"]["resilience"] == 52
        assert usa.json()["scores"]["resilience"] == 46

    def test_simulators_for_different_countries(self, slow_app):
        projection, ripple = self._gather("/country/India/projection", "/country/USA/ripple")
        assert projection.status_code == 200
        assert ripple.status_code == 200
        assert projection.json()["country"] == "India"
        assert ripple.json()["country"] == "USA"

    def test_requests_leave_selection_untouched(self, slow_app):
        self._gather("/country/India", "/country/Brazil/ripple")
        assert app.state.session.selected is None
        assert app.state.session.context is None
