"""Generic text-completion providers and LLM output parsing helpers."""

import json
import logging
import re
from typing import List, Type, TypeVar

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel

from office_finder.core.config import Settings
from office_finder.core.errors import ConfigError
from office_finder.models import Completion

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

LANGUAGE_NAMES = {
    "en": "English",
    "hi": "Hindi",
    "mr": "Marathi",
    "ta": "Tamil",
    "te": "Telugu",
    "bn": "Bengali",
    "gu": "Gujarati",
    "kn": "Kannada",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get((code or "en").lower(), code or "English")


def _system_prompt(language: str) -> str:
    return (
        "You help citizens find the right government office and prepare for their visit. "
        f"Write every free-text value in {language_name(language)}."
    )


class OpenAIProvider:
    def __init__(self, api_key: str, model: str, provider_id: str = "openai") -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is required for the OpenAI provider")
        self.provider_id = provider_id
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key)

    async def complete(self, prompt: str, language: str) -> Completion:
        response = await self._client.chat.completions.create(
            model=self.model,
            temperature=0.2,
            messages=[
                {"role": "system", "content": _system_prompt(language)},
                {"role": "user", "content": prompt},
            ],
        )
        text = response.choices[0].message.content or ""
        return Completion(text=text, provider_id=self.provider_id)


class AnthropicProvider:
    def __init__(self, api_key: str, model: str, provider_id: str = "anthropic") -> None:
        if not api_key:
            raise ConfigError("ANTHROPIC_API_KEY is required for the Anthropic provider")
        self.provider_id = provider_id
        self.model = model
        self._client = AsyncAnthropic(api_key=api_key)

    async def complete(self, prompt: str, language: str) -> Completion:
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=1024,
            temperature=0.2,
            system=_system_prompt(language),
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(getattr(block, "text", "") for block in response.content)
        return Completion(text=text, provider_id=self.provider_id)


def build_providers(settings: Settings) -> List[object]:
    """Instantiate providers in configured order, skipping those without credentials."""
    providers: List[object] = []
    for name in settings.generic_providers:
        try:
            if name == "openai":
                providers.append(OpenAIProvider(settings.openai_api_key, settings.openai_model))
            elif name == "anthropic":
                providers.append(AnthropicProvider(settings.anthropic_api_key, settings.anthropic_model))
        except ConfigError as exc:
            logger.warning("Generic provider %s disabled: %s", name, exc)
    return providers


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output."""
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json(raw_output: str, model: Type[T]) -> T:
    """
    Parse LLM output as JSON and validate it against a Pydantic model.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        pydantic.ValidationError: If parsed JSON doesn't match schema
    """
    return model.model_validate(json.loads(strip_llm_fences(raw_output)))
