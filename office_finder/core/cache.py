"""In-process TTL cache for raw live-search results."""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from office_finder.models import CacheEntry

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Lower-case and collapse whitespace; used for cache and dedup keys."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().lower()


def cache_key(service_type: str, address: str) -> str:
    return f"{normalize_text(service_type)}|{normalize_text(address)}"


class CacheLayer:
    """Keyed store with lazy expiry: entries are only checked when read.

    Distinct keys never contend, so no locking is needed on a single event loop.
    """

    def __init__(self, default_ttl: int = 86400, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            logger.debug("Cache entry expired for %s", key)
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, results: List[Dict[str, Any]], ttl: Optional[int] = None) -> CacheEntry:
        ttl = self._default_ttl if ttl is None else ttl
        entry = CacheEntry(key=key, results=list(results), expires_at=self._clock() + ttl)
        self._entries[key] = entry
        logger.debug("Cached %d live results for %s (ttl=%ss)", len(results), key, ttl)
        return entry

    def invalidate(self, key: str) -> bool:
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("Invalidated cached live results for %s", key)
        return removed

    def __len__(self) -> int:
        return len(self._entries)
