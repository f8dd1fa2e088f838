"""Deduplication and proximity ordering of office candidates."""

import dataclasses
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

from office_finder.core.cache import normalize_text
from office_finder.models import CandidateOffice, Coordinates, SourceKind

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088

# Higher wins when confidences are equal.
_KIND_PRIORITY = {
    SourceKind.LIVE: 2,
    SourceKind.INDEX: 1,
    SourceKind.GENERIC: 0,
}


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def dedup_key(candidate: CandidateOffice) -> Tuple[str, str]:
    return normalize_text(candidate.name), normalize_text(candidate.address)


def _preferred(current: CandidateOffice, challenger: CandidateOffice) -> CandidateOffice:
    if challenger.source_confidence != current.source_confidence:
        return challenger if challenger.source_confidence > current.source_confidence else current
    if _KIND_PRIORITY[challenger.source_kind] > _KIND_PRIORITY[current.source_kind]:
        return challenger
    return current


def deduplicate(candidates: Iterable[CandidateOffice]) -> List[CandidateOffice]:
    """Collapse duplicates, keeping the winner at the first occurrence's position."""
    slots: Dict[Tuple[str, str], int] = {}
    kept: List[CandidateOffice] = []
    for candidate in candidates:
        key = dedup_key(candidate)
        if key in slots:
            index = slots[key]
            kept[index] = _preferred(kept[index], candidate)
            logger.debug("Merged duplicate office %r", candidate.name)
            continue
        slots[key] = len(kept)
        kept.append(candidate)
    return kept


def rank(candidates: Iterable[CandidateOffice], origin: Optional[Coordinates]) -> List[CandidateOffice]:
    """Deduplicate then order nearest first.

    Candidates without coordinates (or every candidate, when the origin is
    unknown) follow the located ones in their input order. Travel time is
    carried along but never used as a sort key.
    """
    unique = deduplicate(candidates)

    located: List[Tuple[float, int, CandidateOffice]] = []
    unlocated: List[CandidateOffice] = []
    for position, candidate in enumerate(unique):
        if origin is None or candidate.coordinates is None:
            unlocated.append(candidate)
            continue
        distance = haversine_km(origin, candidate.coordinates)
        located.append((distance, position, dataclasses.replace(candidate, distance_km=round(distance, 2))))

    located.sort(key=lambda item: (item[0], item[1]))
    return [candidate for _, _, candidate in located] + unlocated
