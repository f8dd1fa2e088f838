"""Core data models shared by the query resolution pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

Coordinates = Tuple[float, float]


class SourceKind(str, Enum):
    INDEX = "index"
    LIVE = "live"
    GENERIC = "generic"


class Provenance(str, Enum):
    """Which resolution stage produced a recommendation."""

    INDEX_HIGH = "index-high"
    INDEX_BROAD = "index-broad"
    LIVE = "live"
    GENERIC = "generic"


class EntityKind(str, Enum):
    DOCUMENT_TYPE = "document_type"
    LOCATION = "location"
    DATE = "date"
    PERSON_NAME = "person_name"


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    platform: str = ""
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    language: str = "en"
    onboarding_complete: bool = False

    def __post_init__(self) -> None:
        if self.onboarding_complete and not self.has_required_fields():
            raise ValueError("a profile marked complete needs name, address, city, state and language")

    def has_required_fields(self) -> bool:
        return all(
            value and value.strip()
            for value in (self.name, self.address, self.city, self.state, self.language)
        )


@dataclass(frozen=True)
class Intent:
    category: str
    confidence: float


@dataclass(frozen=True)
class Entity:
    kind: EntityKind
    value: str


@dataclass(frozen=True)
class ServiceQuery:
    """Normalized, immutable view of what the user asked for."""

    text: str
    language: str
    intent: Intent
    entities: Tuple[Entity, ...] = ()

    def entity(self, kind: EntityKind) -> Optional[str]:
        for item in self.entities:
            if item.kind is kind and item.value.strip():
                return item.value.strip()
        return None

    @property
    def service_type(self) -> str:
        category = (self.intent.category or "").strip()
        if category and category not in {"unknown", "profile_update"}:
            return category
        return self.entity(EntityKind.DOCUMENT_TYPE) or self.text.strip()


@dataclass(frozen=True)
class OfficeTimings:
    weekday: Optional[str] = None
    saturday: Optional[str] = None
    sunday: Optional[str] = None
    holiday: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.weekday, self.saturday, self.sunday, self.holiday))


@dataclass(frozen=True)
class IndexOrigin:
    confidence: float
    document_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    kind = SourceKind.INDEX


@dataclass(frozen=True)
class LiveOrigin:
    confidence: float
    place_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    travel_time: Optional[str] = None

    kind = SourceKind.LIVE


@dataclass(frozen=True)
class GenericOrigin:
    """AI-generated office data. Carries no coordinates and always needs a disclaimer."""

    provider_id: str
    confidence: float = 0.0

    kind = SourceKind.GENERIC
    coordinates = None


OfficeOrigin = Union[IndexOrigin, LiveOrigin, GenericOrigin]


@dataclass(frozen=True)
class CandidateOffice:
    """Office record with the same shape whatever source produced it."""

    name: str
    address: str
    origin: OfficeOrigin
    city: str = ""
    state: str = ""
    phone: Optional[str] = None
    timings: OfficeTimings = field(default_factory=OfficeTimings)
    distance_km: Optional[float] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.origin.confidence <= 1.0:
            raise ValueError(f"source confidence out of range: {self.origin.confidence}")

    @property
    def source_kind(self) -> SourceKind:
        return self.origin.kind

    @property
    def source_confidence(self) -> float:
        return self.origin.confidence

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.origin.coordinates

    @property
    def travel_time(self) -> Optional[str]:
        return getattr(self.origin, "travel_time", None)

    @property
    def requires_disclaimer(self) -> bool:
        return self.origin.kind is SourceKind.GENERIC


@dataclass(frozen=True)
class ServiceRecommendation:
    service_type: str
    offices: List[CandidateOffice]
    provenance: Provenance
    required_documents: List[str] = field(default_factory=list)
    processing_time: Optional[str] = None
    notes: str = ""

    @property
    def requires_disclaimer(self) -> bool:
        if self.provenance is Provenance.GENERIC:
            return True
        return any(office.requires_disclaimer for office in self.offices)

    def has_guidance(self) -> bool:
        return bool(self.required_documents or self.processing_time or self.notes)


@dataclass
class CacheEntry:
    key: str
    results: List[Dict[str, Any]]
    expires_at: float


@dataclass(frozen=True)
class SearchHit:
    """One semantic index match, ordered by descending similarity by the index."""

    content: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexDocument:
    id: str
    content: str
    metadata: Dict[str, Any]


@dataclass(frozen=True)
class Completion:
    text: str
    provider_id: str


@dataclass(frozen=True)
class InboundMessage:
    user_id: str
    text: str
    platform: str = ""


@dataclass(frozen=True)
class OutgoingMessage:
    text: str
    kind: str = "main"
