"""Cascade orchestration: index (high) -> index (broad) -> live discovery -> generic AI."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Optional, Set

from office_finder.core.cache import CacheLayer, normalize_text
from office_finder.core.config import Settings
from office_finder.core.errors import FallbackExhausted, ResolutionExhausted
from office_finder.core.ranker import rank
from office_finder.etl.transform import to_index_document
from office_finder.models import (
    Coordinates,
    Provenance,
    ServiceQuery,
    ServiceRecommendation,
    UserProfile,
)
from office_finder.pipeline.stages import (
    GenericFallbackStage,
    LiveDiscoveryStage,
    SemanticSearchStage,
    StageResult,
    call_collaborator,
)

logger = logging.getLogger(__name__)

ORIGIN_MEMO_SIZE = 1024


class QueryResolutionPipeline:
    """Runs the stages in a fixed order and stops at the first usable result.

    A stage that raises or exceeds its timeout counts as "no result". Only
    total exhaustion escapes, as ``ResolutionExhausted``.
    """

    def __init__(
        self,
        semantic: Optional[SemanticSearchStage],
        live: Optional[LiveDiscoveryStage],
        fallback: Optional[GenericFallbackStage],
        settings: Settings,
        index=None,
        cache: Optional[CacheLayer] = None,
        geocoder=None,
    ) -> None:
        self.semantic = semantic
        self.live = live
        self.fallback = fallback
        self.settings = settings
        self.index = index
        self.cache = cache if cache is not None else (live.cache if live is not None else None)
        self.geocoder = geocoder
        self._origins: OrderedDict[str, Optional[Coordinates]] = OrderedDict()
        self._background: Set[asyncio.Task] = set()

    async def resolve(self, query: ServiceQuery, profile: UserProfile) -> ServiceRecommendation:
        settings = self.settings
        guidance: Optional[StageResult] = None

        for threshold, provenance in (
            (settings.high_confidence_threshold, Provenance.INDEX_HIGH),
            (settings.broad_confidence_threshold, Provenance.INDEX_BROAD),
        ):
            result = await self._semantic(query, profile, threshold)
            if result is None:
                continue
            if result.offices:
                logger.info("Resolved %r from the index (%s, top=%.2f)", query.service_type, provenance.value, result.top_similarity)
                return await self._recommend(result, provenance, profile)
            guidance = guidance or result

        result = await self._run_stage("live discovery", self.live, settings.live_timeout, query, profile)
        if result is not None:
            if result.fresh:
                self._schedule_index_feed(result)
            logger.info("Resolved %r from live discovery (%d offices)", query.service_type, len(result.offices))
            return await self._recommend(_with_guidance(result, guidance), Provenance.LIVE, profile)

        if self.fallback is None:
            raise ResolutionExhausted(f"no stage resolved {query.service_type!r}")
        try:
            # The stage enforces its own deadline so it can still pick a finished answer.
            result = await self.fallback.run(query, profile)
        except FallbackExhausted as exc:
            logger.error("Resolution exhausted for %r: %s", query.service_type, exc)
            raise ResolutionExhausted(str(exc)) from exc
        logger.info("Resolved %r from the generic fallback", query.service_type)
        return await self._recommend(_with_guidance(result, guidance), Provenance.GENERIC, profile)

    async def _semantic(self, query: ServiceQuery, profile: UserProfile, threshold: float) -> Optional[StageResult]:
        if self.semantic is None:
            return None
        return await self._run_stage(
            f"semantic search@{threshold:.2f}",
            self.semantic,
            self.settings.semantic_timeout,
            query,
            profile,
            threshold,
        )

    async def _run_stage(self, name: str, stage, timeout: float, *args) -> Optional[StageResult]:
        if stage is None:
            return None
        try:
            return await asyncio.wait_for(stage.run(*args), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Stage %s timed out after %.1fs", name, timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Stage %s failed: %s", name, exc)
        return None

    async def _recommend(self, result: StageResult, provenance: Provenance, profile: UserProfile) -> ServiceRecommendation:
        origin = None
        if any(office.coordinates is not None for office in result.offices):
            origin = await self._origin(profile)
        return ServiceRecommendation(
            service_type=result.service_type,
            offices=rank(result.offices, origin),
            provenance=provenance,
            required_documents=list(result.required_documents),
            processing_time=result.processing_time,
            notes=result.notes,
        )

    async def _origin(self, profile: UserProfile) -> Optional[Coordinates]:
        if self.geocoder is None:
            return None
        key = "|".join(normalize_text(part) for part in (profile.address, profile.city, profile.state))
        if key in self._origins:
            self._origins.move_to_end(key)
            return self._origins[key]
        try:
            origin = await asyncio.wait_for(
                call_collaborator(self.geocoder.geocode, profile.address, profile.city, profile.state),
                timeout=self.settings.live_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Geocoding timed out; ranking without distances")
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Geocoding failed; ranking without distances: %s", exc)
            return None
        self._origins[key] = origin
        if len(self._origins) > ORIGIN_MEMO_SIZE:
            self._origins.popitem(last=False)
        return origin

    def _schedule_index_feed(self, result: StageResult) -> None:
        if self.index is None:
            return
        documents = [to_index_document(result.service_type, office) for office in result.offices]
        task = asyncio.create_task(self._feed_index(documents, result.cache_key))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _feed_index(self, documents, key: Optional[str]) -> None:
        try:
            await self.index.upsert(documents)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Index update with %d live offices failed: %s", len(documents), exc)
            return
        if key and self.cache is not None:
            self.cache.invalidate(key)

    async def wait_for_background(self) -> None:
        """Wait for pending index updates, e.g. before shutdown."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


def _with_guidance(result: StageResult, guidance: Optional[StageResult]) -> StageResult:
    """Carry documents/time/notes from an office-less index match into a later stage."""
    if guidance is None:
        return result
    if not result.required_documents:
        result.required_documents = list(guidance.required_documents)
    if not result.processing_time:
        result.processing_time = guidance.processing_time
    if not result.notes:
        result.notes = guidance.notes
    return result
