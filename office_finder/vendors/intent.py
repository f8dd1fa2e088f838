"""LLM-based intent and entity extraction for inbound citizen messages."""

import json
import logging
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from office_finder.core.errors import ConfigError
from office_finder.models import Entity, EntityKind, Intent, ServiceQuery, UserProfile
from office_finder.vendors.llm import parse_llm_json

logger = logging.getLogger(__name__)

_PROMPT = """Classify the citizen's message about a government service.
Return only JSON of this shape:
{{"language": "<ISO 639-1 code of the message>",
  "service_category": "<short service name, e.g. passport renewal, or profile_update, or unknown>",
  "confidence": <0..1>,
  "entities": [{{"kind": "document_type|location|date|person_name", "value": "..."}}]}}
Use service_category "profile_update" only when the user asks to change their saved name or address.

Message: {text}"""


class ExtractedEntity(BaseModel):
    kind: str
    value: str


class ExtractedIntent(BaseModel):
    language: Optional[str] = None
    service_category: str = "unknown"
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    entities: List[ExtractedEntity] = Field(default_factory=list)


def to_service_query(text: str, extracted: ExtractedIntent, fallback_language: str) -> ServiceQuery:
    entities = []
    for item in extracted.entities:
        try:
            kind = EntityKind(item.kind)
        except ValueError:
            logger.debug("Ignoring unknown entity kind %r", item.kind)
            continue
        if item.value.strip():
            entities.append(Entity(kind=kind, value=item.value.strip()))
    return ServiceQuery(
        text=" ".join(text.split()),
        language=(extracted.language or fallback_language or "en").lower(),
        intent=Intent(category=extracted.service_category.strip().lower(), confidence=extracted.confidence),
        entities=tuple(entities),
    )


class LlmIntentExtractor:
    def __init__(self, api_key: str, model: str) -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is required for intent extraction")
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def extract(self, text: str, profile: UserProfile) -> ServiceQuery:
        fallback_language = profile.language or "en"
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                temperature=0,
                response_format={"type": "json_object"},
                messages=[{"role": "user", "content": _PROMPT.format(text=text)}],
            )
            extracted = parse_llm_json(response.choices[0].message.content or "{}", ExtractedIntent)
        except (json.JSONDecodeError, ValidationError, OpenAIError) as exc:
            logger.warning("Intent extraction returned unusable output: %s", exc)
            extracted = ExtractedIntent()
        # Missing language falls back to the profile setting.
        if not extracted.language:
            extracted.language = fallback_language
        return to_service_query(text, extracted, fallback_language)
