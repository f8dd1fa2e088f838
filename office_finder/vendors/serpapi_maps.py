"""SerpAPI Google Maps engine as an alternative live place search."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Iterable, List

from serpapi import GoogleSearch

from office_finder.core.errors import ConfigError, DataSourceError
from office_finder.vendors.google_places import build_query

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2


class SerpApiError(DataSourceError):
    """Raised when SerpAPI returns an empty or error payload."""


def build_serpapi_params(query: str, api_key: str) -> Dict[str, Any]:
    """Construct SerpAPI request parameters for the Google Maps engine."""
    if not query or not query.strip():
        raise ValueError("Query must be provided for SerpAPI lookups.")
    return {
        "engine": "google_maps",
        "q": query.strip(),
        "api_key": api_key,
        "type": "search",
    }


def fetch_from_serpapi(query: str, api_key: str) -> Dict[str, Any]:
    """Call SerpAPI Google Maps and return the raw JSON response with retry logic.

    SerpAPI charges per request; the live discovery stage caches results so
    identical queries do not reach this function twice within the cache TTL.
    """
    params = build_serpapi_params(query, api_key)

    attempt = 0
    while True:
        attempt += 1
        try:
            logger.info("Calling SerpAPI (attempt %s) for query=%s", attempt, query)
            data = GoogleSearch(params).get_dict()
            if not data:
                raise SerpApiError("SerpAPI returned an empty payload.")
            if "error" in data:
                raise SerpApiError(f"SerpAPI returned an error response: {data.get('error') or data}")
            return data
        except Exception as exc:  # noqa: BLE001
            logger.warning("SerpAPI request failed (attempt %s/%s): %s", attempt, RETRY_LIMIT + 1, exc)
            if attempt > RETRY_LIMIT:
                logger.error("SerpAPI request exhausted retries for query=%s", query)
                raise
            time.sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.8))


def extract_items(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """SerpAPI sometimes returns local_results as a list or nested dict."""
    items: Iterable[Any] = []
    local_results = data.get("local_results")
    if isinstance(local_results, list):
        items = local_results
    elif isinstance(local_results, dict):
        for maybe in (local_results.get("places"), local_results.get("results"), local_results.get("local_results")):
            if isinstance(maybe, list):
                items = maybe
                break

    if not items:
        place_results = data.get("place_results")
        if isinstance(place_results, list):
            items = place_results
        elif isinstance(place_results, dict):
            items = [place_results]

    return [item for item in items if isinstance(item, dict)]


class SerpApiMapsSearch:
    def __init__(self, api_key: str, max_results: int = 5) -> None:
        if not api_key:
            raise ConfigError("SERPAPI_API_KEY is required for SerpAPI live search")
        self.api_key = api_key
        self.max_results = max_results

    def search(self, service_type: str, address: str, city: str, state: str) -> List[Dict[str, Any]]:
        query = build_query(service_type, address, city, state)
        items = extract_items(fetch_from_serpapi(query, self.api_key))
        if not items:
            logger.warning("SerpAPI response had no place items for query=%s", query)
        return items[: self.max_results]
