"""Builds the pipeline and conversation service from settings."""

import logging
from typing import Optional

from office_finder.conversation.service import ConversationService, SessionStore
from office_finder.conversation.state_machine import ConversationStateMachine
from office_finder.core.cache import CacheLayer
from office_finder.core.config import Settings
from office_finder.core.errors import ConfigError
from office_finder.core.profiles import PgProfileStore
from office_finder.messaging.assembler import ResponseAssembler
from office_finder.pipeline.resolver import QueryResolutionPipeline
from office_finder.pipeline.stages import GenericFallbackStage, LiveDiscoveryStage, SemanticSearchStage
from office_finder.vendors.google_places import GoogleGeocoder, GooglePlacesSearch
from office_finder.vendors.intent import LlmIntentExtractor
from office_finder.vendors.llm import build_providers
from office_finder.vendors.semantic_index import PgVectorIndex
from office_finder.vendors.serpapi_maps import SerpApiMapsSearch

logger = logging.getLogger(__name__)


def build_live_client(settings: Settings):
    if settings.live_search_provider == "serpapi":
        return SerpApiMapsSearch(settings.serpapi_api_key)
    return GooglePlacesSearch(settings.google_api_key)


def build_pipeline(settings: Settings, cache: Optional[CacheLayer] = None) -> QueryResolutionPipeline:
    if cache is None:
        cache = CacheLayer(default_ttl=settings.live_cache_ttl)

    index = None
    semantic = None
    if settings.database_url and settings.openai_api_key:
        index = PgVectorIndex()
        semantic = SemanticSearchStage(index, top_k=settings.semantic_top_k)
    else:
        logger.warning("Semantic index disabled: DATABASE_URL and OPENAI_API_KEY are both required.")

    live = None
    try:
        live = LiveDiscoveryStage(
            build_live_client(settings),
            cache,
            default_region=settings.default_phone_region,
            ttl=settings.live_cache_ttl,
        )
    except ConfigError as exc:
        logger.warning("Live discovery disabled: %s", exc)

    geocoder = None
    if settings.google_api_key:
        geocoder = GoogleGeocoder(settings.google_api_key)

    providers = build_providers(settings)
    fallback = GenericFallbackStage(providers, timeout=settings.generic_timeout, max_chars=settings.generic_max_chars)

    return QueryResolutionPipeline(
        semantic=semantic,
        live=live,
        fallback=fallback,
        settings=settings,
        index=index,
        cache=cache,
        geocoder=geocoder,
    )


def build_conversation_service(settings: Settings) -> ConversationService:
    machine = ConversationStateMachine(
        profiles=PgProfileStore(),
        extractor=LlmIntentExtractor(settings.openai_api_key, settings.openai_model),
        pipeline=build_pipeline(settings),
        assembler=ResponseAssembler(notes_max_chars=settings.notes_max_chars),
        clarification_threshold=settings.clarification_threshold,
    )
    return ConversationService(machine, SessionStore(idle_seconds=settings.session_idle_seconds))
