"""
resilience.session — Country selection: concurrent fetch, join, merge.

The only mutable state in the package lives here: which country is
currently selected and the last context produced for it. Everything
downstream receives an immutable AnalysisContext.

Design contract:
    - Both sources are fetched concurrently and JOINED: an AnalysisContext
      is produced only once both have answered (or failed, or timed out).
      No partially merged dataset is ever exposed.
    - A failing or slow source degrades to an all-absent reading on its own;
      it never aborts the other fetch.
    - Every fetch is bounded by FETCH_TIMEOUT_SECONDS.
    - In-flight loads are keyed by country. A load that completes after the
      selection moved to another country is discarded (last selection wins).
      Selection state belongs to one interactive user; shared callers (the
      HTTP API) use load(), which never reads or writes the selection.
    - An AnalysisContext is always produced for the selected country,
      whatever the sources do.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from resilience.constants import FETCH_TIMEOUT_SECONDS, CountryRecord, get_country
from resilience.fallback import (
    AirQualityReading,
    EconomicReading,
    EffectiveDataset,
    LiveObservation,
    SourceStatus,
    merge_record,
    source_statuses,
)
from resilience.fetchers import IndicatorFetcher
from resilience.scoring import ScoreSet, calc_scores, classify

logger = logging.getLogger("resilience.session")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AnalysisContext:
    """Immutable snapshot of one completed selection."""

    country: str
    dataset: EffectiveDataset
    economic_status: SourceStatus
    air_quality_status: SourceStatus

    @property
    def scores(self) -> ScoreSet:
        # Recomputed on every read; scores are never stored.
        return calc_scores(self.dataset)

    def to_dict(self) -> dict[str, Any]:
        scores = self.scores
        category = classify(scores.resilience)
        return {
            "country": self.country,
            "dataset": self.dataset.to_dict(),
            "status": {
                "economic": self.economic_status.value,
                "air_quality": self.air_quality_status.value,
            },
            "scores": scores.to_dict(),
            "category": {"label": category.label, "color": category.color},
        }


class SelectionSession:
    """Runs the fetch → merge pipeline for the selected country."""

    def __init__(
        self,
        fetcher: IndicatorFetcher,
        *,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._fetcher = fetcher
        self._timeout = timeout
        self._selected: str | None = None
        self._context: AnalysisContext | None = None
        self._inflight: dict[str, asyncio.Future[AnalysisContext]] = {}

    @property
    def selected(self) -> str | None:
        return self._selected

    @property
    def context(self) -> AnalysisContext | None:
        """Context of the current selection, None while its load is pending."""
        return self._context

    @property
    def statuses(self) -> tuple[SourceStatus, SourceStatus]:
        if self._context is not None:
            return self._context.economic_status, self._context.air_quality_status
        return SourceStatus.PENDING, SourceStatus.PENDING

    async def select(self, identifier: str) -> AnalysisContext | None:
        """Select a country and wait for its joined context.

        Returns None when another country was selected while this load was
        in flight; the stale result is dropped.

        Raises:
            UnknownCountryError: identifier outside the supported set.
        """
        record = get_country(identifier)
        country = record.profile.name

        self._selected = country
        self._context = None

        context = await self._shared_load(record)

        if self._selected != country:
            logger.info(json.dumps({
                "event": "stale_result_discarded",
                "country": country,
                "selected": self._selected,
            }))
            return None

        self._context = context
        return context

    async def context_for(self, identifier: str) -> AnalysisContext | None:
        """Reuse the current context when it belongs to identifier, else select."""
        record = get_country(identifier)
        if self._context is not None and self._context.country == record.profile.name:
            return self._context
        return await self.select(identifier)

    async def load(self, identifier: str) -> AnalysisContext:
        """Fetch, join and merge one country without touching the selection.

        Stateless with respect to selected/context, so concurrent callers
        asking for different countries never affect each other. Concurrent
        loads of the same country share one fetch.

        Raises:
            UnknownCountryError: identifier outside the supported set.
        """
        return await self._shared_load(get_country(identifier))

    async def _shared_load(self, record: CountryRecord) -> AnalysisContext:
        country = record.profile.name
        task = self._inflight.get(country)
        if task is None:
            task = asyncio.ensure_future(self._load(record))
            self._inflight[country] = task
        try:
            # Shielded: one cancelled waiter must not cancel the others' load.
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(country) is task:
                del self._inflight[country]

    async def _load(self, record: CountryRecord) -> AnalysisContext:
        profile = record.profile
        economic, air = await asyncio.gather(
            self._bounded(
                self._fetcher.fetch_economic(profile.iso3), "world_bank", profile.name,
                EconomicReading(),
            ),
            self._bounded(
                self._fetcher.fetch_air_quality(profile.iso2), "openaq", profile.name,
                AirQualityReading(),
            ),
        )
        live = LiveObservation.from_readings(economic, air)
        economic_status, air_status = source_statuses(live)
        logger.info(json.dumps({
            "event": "selection_loaded",
            "country": profile.name,
            "economic_status": economic_status.value,
            "air_quality_status": air_status.value,
        }))
        return AnalysisContext(
            country=profile.name,
            dataset=merge_record(live, record),
            economic_status=economic_status,
            air_quality_status=air_status,
        )

    async def _bounded(self, fetch: Awaitable[T], source: str, country: str, absent: T) -> T:
        """Await one fetch under the timeout; degrade to `absent` on any failure."""
        try:
            return await asyncio.wait_for(fetch, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(json.dumps({
                "event": "fetch_timeout",
                "source": source,
                "country": country,
                "timeout_s": self._timeout,
            }))
        except Exception as exc:
            logger.warning(json.dumps({
                "event": "fetch_failed",
                "source": source,
                "country": country,
                "error_type": type(exc).__name__,
                "error": str(exc),
            }))
        return absent
