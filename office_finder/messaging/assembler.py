"""Turns a recommendation into an ordered list of platform-ready messages."""

import html
import logging
from dataclasses import dataclass
from typing import List, Optional

from office_finder.messaging.catalog import translate
from office_finder.models import CandidateOffice, OutgoingMessage, ServiceRecommendation

logger = logging.getLogger(__name__)

MAX_DOCUMENTS = 8


@dataclass(frozen=True)
class PlatformFormat:
    """Emphasis markers the target platform understands."""

    bold_open: str = ""
    bold_close: str = ""
    escape_html: bool = False

    def escape(self, text: str) -> str:
        return html.escape(text, quote=False) if self.escape_html else text

    def bold(self, text: str) -> str:
        return f"{self.bold_open}{self.escape(text)}{self.bold_close}"


PLATFORM_FORMATS = {
    "plain": PlatformFormat(),
    "whatsapp": PlatformFormat("*", "*"),
    "telegram": PlatformFormat("<b>", "</b>", escape_html=True),
    "markdown": PlatformFormat("**", "**"),
}


def platform_format(name: Optional[str]) -> PlatformFormat:
    return PLATFORM_FORMATS.get((name or "plain").lower(), PLATFORM_FORMATS["plain"])


def shorten(text: str, limit: int) -> str:
    """Trim to ``limit`` characters on a word boundary."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0].rstrip(",;:")
    return f"{cut}..."


class ResponseAssembler:
    """Main message first, then exactly one message per ranked office."""

    def __init__(self, notes_max_chars: int = 600) -> None:
        self.notes_max_chars = notes_max_chars

    def assemble(
        self,
        rec: ServiceRecommendation,
        language: str,
        fmt: PlatformFormat = PLATFORM_FORMATS["plain"],
    ) -> List[OutgoingMessage]:
        if not rec.offices:
            lines = [translate("no_offices", language, service=fmt.escape(rec.service_type))]
            lines.extend(self._guidance_lines(rec, language, fmt))
            return [OutgoingMessage(text="\n".join(lines), kind="notice")]

        messages = [OutgoingMessage(text=self._main_text(rec, language, fmt), kind="main")]
        for office in rec.offices:
            messages.append(OutgoingMessage(text=self._office_text(office, language, fmt), kind="office"))
        logger.debug("Assembled %d messages for %s (%s)", len(messages), rec.service_type, rec.provenance.value)
        return messages

    def _main_text(self, rec: ServiceRecommendation, language: str, fmt: PlatformFormat) -> str:
        lines = [translate("service", language, service=fmt.escape(rec.service_type))]
        lines.extend(self._guidance_lines(rec, language, fmt))
        return "\n".join(lines)

    def _guidance_lines(self, rec: ServiceRecommendation, language: str, fmt: PlatformFormat) -> List[str]:
        lines: List[str] = []
        if rec.required_documents:
            lines.append(translate("documents", language))
            lines.extend(f"- {fmt.escape(document)}" for document in rec.required_documents[:MAX_DOCUMENTS])
        if rec.processing_time:
            lines.append(translate("processing_time", language, time=fmt.escape(rec.processing_time)))
        if rec.notes:
            lines.append(fmt.escape(shorten(rec.notes, self.notes_max_chars)))
        if rec.requires_disclaimer:
            lines.append(translate("disclaimer", language))
        return lines

    def _office_text(self, office: CandidateOffice, language: str, fmt: PlatformFormat) -> str:
        lines = [fmt.bold(office.name), translate("address", language, address=fmt.escape(_full_address(office)))]

        timings = office.timings
        if not timings.is_empty():
            lines.append(translate("hours", language))
            for key in ("weekday", "saturday", "sunday", "holiday"):
                hours = getattr(timings, key)
                if hours:
                    lines.append(translate(key, language, hours=fmt.bold(hours)))

        if office.phone:
            lines.append(translate("phone", language, phone=fmt.escape(office.phone)))
        if office.distance_km is not None:
            lines.append(translate("distance", language, km=f"{office.distance_km:.1f}"))
        if office.travel_time:
            lines.append(translate("travel_time", language, time=fmt.escape(office.travel_time)))
        return "\n".join(lines)


def _full_address(office: CandidateOffice) -> str:
    parts = [office.address]
    lowered = office.address.lower()
    for extra in (office.city, office.state):
        if extra and extra.lower() not in lowered:
            parts.append(extra)
    return ", ".join(parts)
