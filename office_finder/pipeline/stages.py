"""Resolution stages: semantic index search, live discovery and generic AI fallback."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from office_finder.core.cache import CacheLayer, cache_key
from office_finder.core.errors import FallbackExhausted
from office_finder.etl.transform import hit_to_candidate, to_candidates
from office_finder.models import (
    CandidateOffice,
    Completion,
    GenericOrigin,
    OfficeTimings,
    ServiceQuery,
    UserProfile,
)
from office_finder.vendors.llm import language_name, parse_llm_json

logger = logging.getLogger(__name__)

REFUSAL_MARKERS = (
    "i can't help",
    "i cannot help",
    "i can't assist",
    "i cannot assist",
    "i'm unable to",
    "i am unable to",
    "i'm sorry, but i can't",
    "as an ai language model",
)


@dataclass
class StageResult:
    service_type: str
    offices: List[CandidateOffice] = field(default_factory=list)
    required_documents: List[str] = field(default_factory=list)
    processing_time: Optional[str] = None
    notes: str = ""
    top_similarity: float = 0.0
    cache_key: Optional[str] = None
    fresh: bool = False


async def call_collaborator(fn, *args):
    """Await async collaborators directly; run blocking ones in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    return await asyncio.to_thread(fn, *args)


def _string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(item).strip() for item in value if str(item).strip()]


class SemanticSearchStage:
    def __init__(self, index, top_k: int = 5) -> None:
        self.index = index
        self.top_k = top_k

    @staticmethod
    def search_text(query: ServiceQuery, profile: UserProfile) -> str:
        location = ", ".join(part for part in (profile.city, profile.state) if part)
        text = f"{query.service_type}: {query.text}"
        return f"{text} ({location})" if location else text

    async def run(self, query: ServiceQuery, profile: UserProfile, threshold: float) -> Optional[StageResult]:
        hits = await self.index.search(self.search_text(query, profile), self.top_k, threshold)
        hits = [hit for hit in hits if hit.similarity >= threshold]
        if not hits:
            return None

        result = StageResult(service_type=query.service_type, top_similarity=max(hit.similarity for hit in hits))
        for hit in hits:
            metadata = hit.metadata
            if metadata.get("service_type") and result.service_type == query.service_type:
                result.service_type = str(metadata["service_type"])
            if not result.required_documents:
                result.required_documents = _string_list(metadata.get("required_documents"))
            if not result.processing_time and metadata.get("processing_time"):
                result.processing_time = str(metadata["processing_time"])
            if not result.notes and metadata.get("notes"):
                result.notes = str(metadata["notes"])
            candidate = hit_to_candidate(hit)
            if candidate is not None:
                result.offices.append(candidate)
        return result


class LiveDiscoveryStage:
    """Live place search with a TTL cache in front of the external call."""

    def __init__(self, client, cache: CacheLayer, default_region: Optional[str] = None, ttl: Optional[int] = None):
        self.client = client
        self.cache = cache
        self.default_region = default_region
        self.ttl = ttl

    async def run(self, query: ServiceQuery, profile: UserProfile) -> Optional[StageResult]:
        service_type = query.service_type
        key = cache_key(service_type, profile.address)

        entry = self.cache.get(key)
        fresh = entry is None
        if entry is not None:
            logger.info("Live discovery cache hit for %s", key)
            records = entry.results
        else:
            records = await call_collaborator(
                self.client.search, service_type, profile.address, profile.city, profile.state
            )
            records = list(records or [])
            if records:
                self.cache.put(key, records, self.ttl)

        offices = to_candidates(records, profile.city, profile.state, self.default_region)
        logger.info("Live discovery kept %d of %d records for %s", len(offices), len(records), key)
        if not offices:
            return None
        return StageResult(service_type=service_type, offices=offices, cache_key=key, fresh=fresh)


class GenericOffice(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: str
    address: str
    city: str = ""
    state: str = ""
    phone: Optional[str] = None
    timings: Dict[str, Optional[str]] = Field(default_factory=dict)


class GenericAnswer(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    service_type: Optional[str] = None
    required_documents: List[str] = Field(default_factory=list)
    processing_time: Optional[str] = None
    notes: str = ""
    # Checked one by one so a malformed office does not sink the whole answer.
    offices: List[Any] = Field(default_factory=list)


_FALLBACK_PROMPT = """A citizen asked: "{text}"
Service they need: {service_type}
They live at: {address}, {city}, {state}
Answer in {language}.

Return only JSON:
{{"service_type": "...",
  "required_documents": ["..."],
  "processing_time": "...",
  "notes": "short procedure guidance",
  "offices": [{{"name": "...", "address": "...", "city": "...", "state": "...", "phone": null,
               "timings": {{"weekday": "...", "saturday": "...", "sunday": "...", "holiday": "..."}}}}]}}
List only offices you are confident exist. Use an empty list if unsure."""


def is_acceptable(text: Optional[str], max_chars: int) -> bool:
    """Quality bar for a generic answer: non-empty, not too long, not a refusal."""
    if not text or not text.strip():
        return False
    if len(text) > max_chars:
        return False
    lowered = text.lower()
    return not any(marker in lowered for marker in REFUSAL_MARKERS)


class GenericFallbackStage:
    """Fan out to every provider and keep the best qualifying answer.

    A qualifying answer is taken as soon as every provider listed before it
    has finished, so ties go to configuration order. Losers are cancelled.
    """

    def __init__(self, providers: Sequence[Any], timeout: float = 8.0, max_chars: int = 4000) -> None:
        self.providers = list(providers)
        self.timeout = timeout
        self.max_chars = max_chars

    @staticmethod
    def build_prompt(query: ServiceQuery, profile: UserProfile) -> str:
        return _FALLBACK_PROMPT.format(
            text=query.text,
            service_type=query.service_type,
            address=profile.address or "unknown",
            city=profile.city or "unknown",
            state=profile.state or "unknown",
            language=language_name(query.language),
        )

    def _qualifying(self, task: asyncio.Task) -> Optional[Completion]:
        if task.cancelled() or task.exception() is not None:
            return None
        completion = task.result()
        if completion is None or not is_acceptable(completion.text, self.max_chars):
            return None
        return completion

    def _select(self, tasks: List[asyncio.Task], at_deadline: bool) -> Optional[Completion]:
        for task in tasks:
            if not task.done():
                if at_deadline:
                    continue
                return None
            completion = self._qualifying(task)
            if completion is not None:
                return completion
        return None

    async def race(self, prompt: str, language: str) -> Completion:
        if not self.providers:
            raise FallbackExhausted("no generic providers configured")

        tasks = [asyncio.create_task(provider.complete(prompt, language)) for provider in self.providers]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        try:
            pending = set(tasks)
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                _, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                winner = self._select(tasks, at_deadline=False)
                if winner is not None:
                    return winner

            winner = self._select(tasks, at_deadline=True)
            if winner is not None:
                return winner
        finally:
            for provider, task in zip(self.providers, tasks):
                if not task.done():
                    task.cancel()
                elif not task.cancelled() and task.exception() is not None:
                    logger.warning("Generic provider %s failed: %s", getattr(provider, "provider_id", provider), task.exception())

        raise FallbackExhausted("every generic provider failed, timed out or returned an unusable answer")

    def to_result(self, completion: Completion, query: ServiceQuery) -> StageResult:
        try:
            answer = parse_llm_json(completion.text, GenericAnswer)
        except json.JSONDecodeError:
            logger.info("Generic answer from %s was plain text; using it as notes", completion.provider_id)
            answer = GenericAnswer(notes=completion.text.strip())
        except ValidationError as exc:
            # Malformed JSON is never shown to the user.
            logger.warning("Generic answer from %s did not match the answer schema: %s", completion.provider_id, exc)
            answer = GenericAnswer()

        offices = []
        for raw_office in answer.offices:
            try:
                office = GenericOffice.model_validate(raw_office)
            except ValidationError as exc:
                logger.info("Skipping malformed office from %s: %s", completion.provider_id, exc)
                continue
            if not office.name.strip() or not office.address.strip():
                continue
            offices.append(
                CandidateOffice(
                    name=office.name.strip(),
                    address=office.address.strip(),
                    origin=GenericOrigin(provider_id=completion.provider_id),
                    city=office.city,
                    state=office.state,
                    phone=office.phone or None,
                    timings=OfficeTimings(
                        weekday=office.timings.get("weekday") or None,
                        saturday=office.timings.get("saturday") or None,
                        sunday=office.timings.get("sunday") or None,
                        holiday=office.timings.get("holiday") or None,
                    ),
                )
            )
        return StageResult(
            service_type=(answer.service_type or query.service_type).strip(),
            offices=offices,
            required_documents=_string_list(answer.required_documents),
            processing_time=answer.processing_time or None,
            notes=answer.notes.strip(),
        )

    async def run(self, query: ServiceQuery, profile: UserProfile) -> StageResult:
        completion = await self.race(self.build_prompt(query, profile), query.language)
        logger.info("Generic fallback answered by %s", completion.provider_id)
        return self.to_result(completion, query)
