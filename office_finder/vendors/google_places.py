"""Client utilities for the Google Places and Geocoding APIs."""

import logging
from typing import Any, Dict, List, Optional

import requests

from office_finder.core.errors import ConfigError, DataSourceError

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
_DETAIL_FIELDS = (
    "place_id,name,formatted_address,formatted_phone_number,international_phone_number,"
    "geometry,opening_hours,address_components"
)


class GooglePlacesError(DataSourceError):
    """Raised when the Places API returns a non-successful response."""


def _check_status(operation: str, payload: Dict[str, Any]) -> None:
    status = payload.get("status")
    if status not in {"OK", "ZERO_RESULTS"}:
        logger.error("%s failed: status=%s, error_message=%s", operation, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)


def text_search(query: str, api_key: str, pagetoken: Optional[str] = None) -> Dict[str, Any]:
    params = {"query": query, "key": api_key}
    if pagetoken:
        params["pagetoken"] = pagetoken
    response = _SESSION.get(f"{_BASE_URL}/textsearch/json", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    _check_status("text_search", payload)
    return payload


def place_details(place_id: str, api_key: str) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": _DETAIL_FIELDS}
    response = _SESSION.get(f"{_BASE_URL}/details/json", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    _check_status("place_details", payload)
    return payload.get("result", {})


def geocode(address: str, api_key: str) -> Optional[Dict[str, float]]:
    """Return ``{"lat": .., "lng": ..}`` for the best match, or None."""
    response = _SESSION.get(_GEOCODE_URL, params={"address": address, "key": api_key}, timeout=10)
    response.raise_for_status()
    payload = response.json()
    _check_status("geocode", payload)
    results = payload.get("results") or []
    if not results:
        return None
    return results[0].get("geometry", {}).get("location")


def build_query(service_type: str, address: str, city: str, state: str) -> str:
    location = ", ".join(part.strip() for part in (address, city, state) if part and part.strip())
    query = f"{service_type.strip()} office near {location}" if location else f"{service_type.strip()} office"
    return query.strip()


class GooglePlacesSearch:
    """Live place search backed by Text Search followed by Place Details."""

    def __init__(self, api_key: str, max_results: int = 5) -> None:
        if not api_key:
            raise ConfigError("GOOGLE_API_KEY is required for Google Places live search")
        self.api_key = api_key
        self.max_results = max_results

    def search(self, service_type: str, address: str, city: str, state: str) -> List[Dict[str, Any]]:
        query = build_query(service_type, address, city, state)
        logger.info("Running Places text search for query=%s", query)
        response = text_search(query=query, api_key=self.api_key)

        records: List[Dict[str, Any]] = []
        for result in response.get("results", [])[: self.max_results]:
            place_id = result.get("place_id")
            if not place_id:
                logger.debug("Skipping result without place_id: %s", result)
                continue
            try:
                details = place_details(place_id=place_id, api_key=self.api_key)
            except (requests.RequestException, GooglePlacesError) as exc:
                logger.warning("Failed to fetch details for %s: %s", place_id, exc)
                details = result
            records.append(details or result)
        logger.info("Fetched %d place records for query=%s", len(records), query)
        return records


class GoogleGeocoder:
    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ConfigError("GOOGLE_API_KEY is required for geocoding")
        self.api_key = api_key

    def geocode(self, address: str, city: str, state: str) -> Optional[tuple]:
        text = ", ".join(part for part in (address, city, state) if part)
        if not text:
            return None
        location = geocode(text, self.api_key)
        if not location or location.get("lat") is None or location.get("lng") is None:
            return None
        return float(location["lat"]), float(location["lng"])
