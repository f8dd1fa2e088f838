"""CLI job that resolves one service query and prints the assembled messages."""

import argparse
import asyncio
import logging
from typing import List, Optional

from office_finder.core.config import get_settings
from office_finder.core.errors import ResolutionExhausted
from office_finder.jobs.wiring import build_pipeline
from office_finder.messaging.assembler import PLATFORM_FORMATS, ResponseAssembler, platform_format
from office_finder.messaging.catalog import translate
from office_finder.models import Intent, OutgoingMessage, ServiceQuery, UserProfile

logger = logging.getLogger(__name__)


async def run_query_job(
    *,
    service: str,
    address: str,
    city: Optional[str],
    state: Optional[str],
    language: str,
    fmt: str = "plain",
    text: Optional[str] = None,
) -> List[OutgoingMessage]:
    settings = get_settings()
    service = (service or "").strip()
    if not service:
        raise ValueError("Service type is empty")

    query = ServiceQuery(
        text=(text or service).strip(),
        language=language,
        intent=Intent(category=service.lower(), confidence=1.0),
    )
    profile = UserProfile(
        user_id="cli",
        platform="cli",
        address=address or "",
        city=city or "",
        state=state or "",
        language=language,
    )

    pipeline = build_pipeline(settings)
    assembler = ResponseAssembler(notes_max_chars=settings.notes_max_chars)
    logger.info("Resolving service=%s for address=%s city=%s state=%s", service, address, city, state)
    try:
        recommendation = await pipeline.resolve(query, profile)
    except ResolutionExhausted as exc:
        logger.error("Resolution exhausted: %s", exc)
        return [OutgoingMessage(translate("apology", language), "notice")]
    finally:
        await pipeline.wait_for_background()

    logger.info("Resolved with provenance=%s offices=%d", recommendation.provenance.value, len(recommendation.offices))
    return assembler.assemble(recommendation, language, platform_format(fmt))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve a government service query to offices")
    parser.add_argument("--service", dest="service", required=True, help="Service type, e.g. 'passport renewal'")
    parser.add_argument("--address", dest="address", default="", help="Address, landmark or area")
    parser.add_argument("--city", dest="city", help="City")
    parser.add_argument("--state", dest="state", help="State")
    parser.add_argument("--language", dest="language", default="en", help="Reply language code")
    parser.add_argument("--text", dest="text", help="Original query text, if different from the service")
    parser.add_argument(
        "--format",
        dest="fmt",
        choices=sorted(PLATFORM_FORMATS),
        default="plain",
        help="Emphasis markers to apply",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    messages = asyncio.run(
        run_query_job(
            service=args.service,
            address=args.address,
            city=args.city,
            state=args.state,
            language=args.language,
            fmt=args.fmt,
            text=args.text,
        )
    )
    for index, message in enumerate(messages, start=1):
        print(f"--- message {index} ({message.kind}) ---")
        print(message.text)


if __name__ == "__main__":
    main()
