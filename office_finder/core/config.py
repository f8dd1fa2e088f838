"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_KNOWN_PROVIDERS = {"openai", "anthropic"}
_KNOWN_LIVE_PROVIDERS = {"google_places", "serpapi"}


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    db_pool_size: int = 5
    google_api_key: str = ""
    serpapi_api_key: str = ""
    live_search_provider: str = "google_places"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    generic_providers: Tuple[str, ...] = ("openai", "anthropic")
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-5-haiku-latest"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    high_confidence_threshold: float = 0.8
    broad_confidence_threshold: float = 0.5
    clarification_threshold: float = 0.5
    semantic_top_k: int = 5
    semantic_timeout: float = 1.0
    live_timeout: float = 10.0
    generic_timeout: float = 8.0
    generic_max_chars: int = 4000
    live_cache_ttl: int = 86400
    session_idle_seconds: int = 1800
    default_phone_region: Optional[str] = "IN"
    notes_max_chars: int = 600
    worker_port: int = 9000


def _parse_providers(raw: str) -> Tuple[str, ...]:
    providers = []
    for name in raw.split(","):
        name = name.strip().lower()
        if not name:
            continue
        if name not in _KNOWN_PROVIDERS:
            logger.warning("Ignoring unknown generic provider %r", name)
            continue
        if name not in providers:
            providers.append(name)
    return tuple(providers)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    serpapi_api_key = os.getenv("SERPAPI_API_KEY", "")
    live_search_provider = os.getenv("LIVE_SEARCH_PROVIDER", "google_places").strip().lower()
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    anthropic_api_key = os.getenv("ANTHROPIC_API_KEY", "")
    generic_providers = _parse_providers(os.getenv("GENERIC_PROVIDERS", "openai,anthropic"))
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION", "IN")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw else None

    high_threshold = float(os.getenv("HIGH_CONFIDENCE_THRESHOLD", "0.8"))
    broad_threshold = float(os.getenv("BROAD_CONFIDENCE_THRESHOLD", "0.5"))
    if broad_threshold > high_threshold:
        logger.warning(
            "BROAD_CONFIDENCE_THRESHOLD (%.2f) is above HIGH_CONFIDENCE_THRESHOLD (%.2f); using the high value for both.",
            broad_threshold,
            high_threshold,
        )
        broad_threshold = high_threshold

    if live_search_provider not in _KNOWN_LIVE_PROVIDERS:
        logger.warning("Unknown LIVE_SEARCH_PROVIDER %r; falling back to google_places.", live_search_provider)
        live_search_provider = "google_places"

    if not database_url:
        logger.warning("DATABASE_URL is not set; profile and index operations will fail.")
    if live_search_provider == "google_places" and not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places requests will fail.")
    if live_search_provider == "serpapi" and not serpapi_api_key:
        logger.warning("SERPAPI_API_KEY is not configured; SerpAPI requests will fail.")
    if not generic_providers:
        logger.warning("GENERIC_PROVIDERS is empty; the generic fallback stage is disabled.")

    return Settings(
        database_url=database_url,
        db_pool_size=max(1, int(os.getenv("DB_POOL_SIZE", "5"))),
        google_api_key=google_api_key,
        serpapi_api_key=serpapi_api_key,
        live_search_provider=live_search_provider,
        openai_api_key=openai_api_key,
        anthropic_api_key=anthropic_api_key,
        generic_providers=generic_providers,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest"),
        embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
        embedding_dim=int(os.getenv("EMBEDDING_DIM", "1536")),
        high_confidence_threshold=high_threshold,
        broad_confidence_threshold=broad_threshold,
        clarification_threshold=float(os.getenv("CLARIFICATION_THRESHOLD", "0.5")),
        semantic_top_k=int(os.getenv("SEMANTIC_TOP_K", "5")),
        semantic_timeout=float(os.getenv("SEMANTIC_TIMEOUT", "1.0")),
        live_timeout=float(os.getenv("LIVE_TIMEOUT", "10.0")),
        generic_timeout=float(os.getenv("GENERIC_TIMEOUT", "8.0")),
        generic_max_chars=int(os.getenv("GENERIC_MAX_CHARS", "4000")),
        live_cache_ttl=int(os.getenv("LIVE_CACHE_TTL", "86400")),
        session_idle_seconds=int(os.getenv("SESSION_IDLE_SECONDS", "1800")),
        default_phone_region=default_phone_region,
        notes_max_chars=int(os.getenv("NOTES_MAX_CHARS", "600")),
        worker_port=int(os.getenv("WORKER_PORT", "9000")),
    )
