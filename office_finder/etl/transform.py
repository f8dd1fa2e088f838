"""Validation and cleaning of raw place records, and index document mapping."""

import hashlib
import logging
import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

import phonenumbers

from office_finder.core.cache import normalize_text
from office_finder.models import (
    CandidateOffice,
    IndexDocument,
    IndexOrigin,
    LiveOrigin,
    OfficeTimings,
    SearchHit,
)

logger = logging.getLogger(__name__)

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")
_WHITESPACE = re.compile(r"\s+")
_COMMA_RUNS = re.compile(r"\s*,[\s,]*")
# Confidence assigned to live records; the provider does not score relevance.
LIVE_CONFIDENCE = 0.7


def parse_city_state(address_components: Iterable[Dict[str, Any]]) -> Tuple[Optional[str], Optional[str]]:
    city = None
    state = None
    for component in address_components or []:
        types = set(component.get("types", []))
        if "locality" in types or ("administrative_area_level_2" in types and city is None):
            city = component.get("long_name")
        if "administrative_area_level_1" in types:
            state = component.get("long_name")
    return city, state


def clean_address(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = _WHITESPACE.sub(" ", str(value)).strip()
    text = _COMMA_RUNS.sub(", ", text).strip(" ,")
    return text or None


def clean_phone(value: Any, default_region: Optional[str] = None) -> Optional[str]:
    """Format phone numbers internationally when they parse, else tidy the raw text."""
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        parsed = None
    if parsed is not None and phonenumbers.is_valid_number(parsed):
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)
    tidied = re.sub(r"[^\d+()\- ]", "", raw)
    tidied = _WHITESPACE.sub(" ", tidied).strip()
    return tidied or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _extract_coordinates(raw: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    location = (raw.get("geometry") or {}).get("location") or {}
    lat, lng = _safe_float(location.get("lat")), _safe_float(location.get("lng"))
    if lat is None or lng is None:
        gps = raw.get("gps_coordinates") or {}
        lat, lng = _safe_float(gps.get("latitude")), _safe_float(gps.get("longitude"))
    if lat is None or lng is None:
        return None
    return lat, lng


def _day_hours(raw: Dict[str, Any]) -> Dict[str, str]:
    """Collect a day-name -> hours mapping from either provider's shape."""
    hours: Dict[str, str] = {}
    weekday_text = (raw.get("opening_hours") or {}).get("weekday_text") or []
    for line in weekday_text:
        day, sep, value = str(line).partition(":")
        if sep:
            hours[day.strip().lower()] = _WHITESPACE.sub(" ", value).strip()

    operating_hours = raw.get("operating_hours")
    if isinstance(operating_hours, dict):
        for day, value in operating_hours.items():
            hours.setdefault(str(day).strip().lower(), _WHITESPACE.sub(" ", str(value)).strip())
    return hours


def parse_timings(raw: Dict[str, Any]) -> OfficeTimings:
    hours = _day_hours(raw)
    weekday_values = [hours[day] for day in _WEEKDAYS if hours.get(day)]
    weekday = Counter(weekday_values).most_common(1)[0][0] if weekday_values else _strip_or_none(raw.get("hours"))
    return OfficeTimings(
        weekday=weekday,
        saturday=hours.get("saturday") or None,
        sunday=hours.get("sunday") or None,
        holiday=hours.get("holiday") or hours.get("public holidays") or None,
    )


def to_candidate(
    raw: Dict[str, Any],
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
    default_region: Optional[str] = None,
) -> Optional[CandidateOffice]:
    """Validate and clean one live record; records missing name or address are dropped."""
    name = _strip_or_none(raw.get("name") or raw.get("title"))
    address = clean_address(raw.get("formatted_address") or raw.get("address"))
    if not name or not address:
        logger.debug("Dropping live record without name/address: %s", raw.get("place_id") or raw)
        return None

    city, state = parse_city_state(raw.get("address_components", []))
    phone = clean_phone(
        raw.get("international_phone_number") or raw.get("formatted_phone_number") or raw.get("phone"),
        default_region,
    )
    origin = LiveOrigin(
        confidence=LIVE_CONFIDENCE,
        place_id=_strip_or_none(raw.get("place_id")),
        coordinates=_extract_coordinates(raw),
        travel_time=_strip_or_none(raw.get("travel_time")),
    )
    return CandidateOffice(
        name=_WHITESPACE.sub(" ", name),
        address=address,
        origin=origin,
        city=city or fallback_city or "",
        state=state or fallback_state or "",
        phone=phone,
        timings=parse_timings(raw),
    )


def to_candidates(
    records: Iterable[Dict[str, Any]],
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
    default_region: Optional[str] = None,
) -> List[CandidateOffice]:
    candidates = []
    for raw in records:
        if not isinstance(raw, dict):
            continue
        candidate = to_candidate(raw, fallback_city, fallback_state, default_region)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def document_id(service_type: str, office: CandidateOffice) -> str:
    key = "|".join((normalize_text(service_type), normalize_text(office.name), normalize_text(office.address)))
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def to_index_document(service_type: str, office: CandidateOffice) -> IndexDocument:
    timings = office.timings
    coordinates = office.coordinates
    office_payload = {
        "name": office.name,
        "address": office.address,
        "city": office.city,
        "state": office.state,
        "phone": office.phone,
        "timings": {
            "weekday": timings.weekday,
            "saturday": timings.saturday,
            "sunday": timings.sunday,
            "holiday": timings.holiday,
        },
        "lat": coordinates[0] if coordinates else None,
        "lng": coordinates[1] if coordinates else None,
    }
    content = f"{service_type} office: {office.name}, {office.address}"
    if office.city:
        content += f", {office.city}"
    if office.state:
        content += f", {office.state}"
    metadata = {
        "service_type": service_type,
        "source": office.source_kind.value,
        "place_id": getattr(office.origin, "place_id", None),
        "office": office_payload,
    }
    return IndexDocument(id=document_id(service_type, office), content=content, metadata=metadata)


def hit_to_candidate(hit: SearchHit) -> Optional[CandidateOffice]:
    office = hit.metadata.get("office") or {}
    name = _strip_or_none(office.get("name"))
    address = clean_address(office.get("address"))
    if not name or not address:
        logger.debug("Index hit without office name/address skipped")
        return None
    lat, lng = _safe_float(office.get("lat")), _safe_float(office.get("lng"))
    timings = office.get("timings") or {}
    return CandidateOffice(
        name=name,
        address=address,
        origin=IndexOrigin(
            confidence=min(1.0, max(0.0, float(hit.similarity))),
            document_id=_strip_or_none(hit.metadata.get("id")),
            coordinates=(lat, lng) if lat is not None and lng is not None else None,
        ),
        city=office.get("city") or "",
        state=office.get("state") or "",
        phone=_strip_or_none(office.get("phone")),
        timings=OfficeTimings(
            weekday=_strip_or_none(timings.get("weekday")),
            saturday=_strip_or_none(timings.get("saturday")),
            sunday=_strip_or_none(timings.get("sunday")),
            holiday=_strip_or_none(timings.get("holiday")),
        ),
    )
