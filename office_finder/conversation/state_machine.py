"""Per-user conversation state machine gating onboarding and query resolution."""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from office_finder.core.errors import ResolutionExhausted, ValidationError
from office_finder.messaging.assembler import PlatformFormat, ResponseAssembler, platform_format
from office_finder.messaging.catalog import translate
from office_finder.models import EntityKind, InboundMessage, OutgoingMessage, ServiceQuery, UserProfile

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    NEW = "NEW"
    ONBOARDING_NAME = "ONBOARDING_NAME"
    ONBOARDING_ADDRESS = "ONBOARDING_ADDRESS"
    ONBOARDING_CITY = "ONBOARDING_CITY"
    ONBOARDING_STATE = "ONBOARDING_STATE"
    ONBOARDING_LANGUAGE = "ONBOARDING_LANGUAGE"
    ACTIVE = "ACTIVE"
    AWAITING_CLARIFICATION = "AWAITING_CLARIFICATION"


class Event(str, Enum):
    UNSEEN_USER = "unseen_user"
    RETURNING_USER = "returning_user"
    ANSWER = "answer"
    BLANK = "blank"
    CLEAR_QUERY = "clear_query"
    UNCLEAR_QUERY = "unclear_query"
    PROFILE_UPDATE = "profile_update"


class Effect(str, Enum):
    GREET = "greet"
    REPLAY_AS_ACTIVE = "replay_as_active"
    STORE_ANSWER = "store_answer"
    COMMIT_PROFILE = "commit_profile"
    REPROMPT = "reprompt"
    RESOLVE = "resolve"
    CLARIFY = "clarify"
    UPDATE_PROFILE = "update_profile"


S = ConversationState

# (state, event) -> (next state, side effect)
TRANSITIONS: Dict[Tuple[ConversationState, Event], Tuple[ConversationState, Effect]] = {
    (S.NEW, Event.UNSEEN_USER): (S.ONBOARDING_NAME, Effect.GREET),
    (S.NEW, Event.RETURNING_USER): (S.ACTIVE, Effect.REPLAY_AS_ACTIVE),
    (S.ONBOARDING_NAME, Event.ANSWER): (S.ONBOARDING_ADDRESS, Effect.STORE_ANSWER),
    (S.ONBOARDING_NAME, Event.BLANK): (S.ONBOARDING_NAME, Effect.REPROMPT),
    (S.ONBOARDING_ADDRESS, Event.ANSWER): (S.ONBOARDING_CITY, Effect.STORE_ANSWER),
    (S.ONBOARDING_ADDRESS, Event.BLANK): (S.ONBOARDING_ADDRESS, Effect.REPROMPT),
    (S.ONBOARDING_CITY, Event.ANSWER): (S.ONBOARDING_STATE, Effect.STORE_ANSWER),
    (S.ONBOARDING_CITY, Event.BLANK): (S.ONBOARDING_CITY, Effect.REPROMPT),
    (S.ONBOARDING_STATE, Event.ANSWER): (S.ONBOARDING_LANGUAGE, Effect.STORE_ANSWER),
    (S.ONBOARDING_STATE, Event.BLANK): (S.ONBOARDING_STATE, Effect.REPROMPT),
    (S.ONBOARDING_LANGUAGE, Event.ANSWER): (S.ACTIVE, Effect.COMMIT_PROFILE),
    (S.ONBOARDING_LANGUAGE, Event.BLANK): (S.ONBOARDING_LANGUAGE, Effect.REPROMPT),
    (S.ACTIVE, Event.CLEAR_QUERY): (S.ACTIVE, Effect.RESOLVE),
    (S.ACTIVE, Event.UNCLEAR_QUERY): (S.AWAITING_CLARIFICATION, Effect.CLARIFY),
    (S.ACTIVE, Event.BLANK): (S.AWAITING_CLARIFICATION, Effect.CLARIFY),
    (S.ACTIVE, Event.PROFILE_UPDATE): (S.ACTIVE, Effect.UPDATE_PROFILE),
    (S.AWAITING_CLARIFICATION, Event.CLEAR_QUERY): (S.ACTIVE, Effect.RESOLVE),
    (S.AWAITING_CLARIFICATION, Event.UNCLEAR_QUERY): (S.AWAITING_CLARIFICATION, Effect.CLARIFY),
    (S.AWAITING_CLARIFICATION, Event.BLANK): (S.AWAITING_CLARIFICATION, Effect.CLARIFY),
    (S.AWAITING_CLARIFICATION, Event.PROFILE_UPDATE): (S.ACTIVE, Effect.UPDATE_PROFILE),
}

# Onboarding state -> (profile field it collects, prompt key for that field)
ONBOARDING_FIELDS: Dict[ConversationState, Tuple[str, str]] = {
    S.ONBOARDING_NAME: ("name", "ask_name"),
    S.ONBOARDING_ADDRESS: ("address", "ask_address"),
    S.ONBOARDING_CITY: ("city", "ask_city"),
    S.ONBOARDING_STATE: ("state", "ask_state"),
    S.ONBOARDING_LANGUAGE: ("language", "ask_language"),
}

LANGUAGE_ALIASES = {
    "english": "en",
    "en": "en",
    "hindi": "hi",
    "hi": "hi",
    "हिंदी": "hi",
    "हिन्दी": "hi",
    "marathi": "mr",
    "mr": "mr",
    "मराठी": "mr",
}


def validate_answer(state: ConversationState, text: Optional[str]) -> str:
    """Any non-empty text is accepted; addresses get no format checks."""
    answer = " ".join((text or "").split())
    if not answer:
        raise ValidationError(ONBOARDING_FIELDS[state][0])
    return answer


def normalize_language(answer: str) -> str:
    cleaned = " ".join(answer.split()).lower()
    return LANGUAGE_ALIASES.get(cleaned, cleaned)


@dataclass
class ConversationSession:
    user_id: str
    state: ConversationState = ConversationState.NEW
    draft: Dict[str, str] = field(default_factory=dict)
    profile: Optional[UserProfile] = None
    last_active: float = field(default_factory=time.monotonic)

    @property
    def language(self) -> str:
        if self.profile is not None and self.profile.language:
            return self.profile.language
        return self.draft.get("language") or "en"


class ConversationStateMachine:
    def __init__(self, profiles, extractor, pipeline, assembler: ResponseAssembler, clarification_threshold: float = 0.5):
        self.profiles = profiles
        self.extractor = extractor
        self.pipeline = pipeline
        self.assembler = assembler
        self.clarification_threshold = clarification_threshold

    async def handle(
        self,
        session: ConversationSession,
        message: InboundMessage,
        fmt: Optional[PlatformFormat] = None,
    ) -> List[OutgoingMessage]:
        fmt = fmt or platform_format(message.platform)
        event, query = await self._classify(session, message)
        next_state, effect = TRANSITIONS[(session.state, event)]
        logger.debug("%s: %s + %s -> %s (%s)", session.user_id, session.state.value, event.value, next_state.value, effect.value)

        previous = session.state
        session.state = next_state
        try:
            return await self._apply(effect, session, previous, message, query, fmt)
        except Exception:
            # A failed effect leaves the session where it was.
            session.state = previous
            raise

    async def _apply(
        self,
        effect: Effect,
        session: ConversationSession,
        previous: ConversationState,
        message: InboundMessage,
        query: Optional[ServiceQuery],
        fmt: PlatformFormat,
    ) -> List[OutgoingMessage]:
        next_state = session.state
        if effect is Effect.GREET:
            return [OutgoingMessage(translate("greeting", "en"), "notice"), self._prompt(next_state, session)]
        if effect is Effect.REPLAY_AS_ACTIVE:
            return await self.handle(session, message, fmt)
        if effect is Effect.STORE_ANSWER:
            self._store_answer(session, previous, message.text)
            return [self._prompt(next_state, session)]
        if effect is Effect.COMMIT_PROFILE:
            self._store_answer(session, previous, message.text)
            return [await self._commit(session, message.platform)]
        if effect is Effect.REPROMPT:
            prompt = self._prompt(previous, session)
            return [OutgoingMessage(f"{translate('empty_answer', session.language)} {prompt.text}", "notice")]
        if effect is Effect.CLARIFY:
            return [OutgoingMessage(translate("clarify", query.language if query else session.language), "notice")]
        if effect is Effect.UPDATE_PROFILE:
            return [await self._update_profile(session, query)]
        return await self._resolve(session, query, fmt)

    async def _classify(self, session: ConversationSession, message: InboundMessage) -> Tuple[Event, Optional[ServiceQuery]]:
        text = message.text or ""
        if session.state is S.NEW:
            profile = await self.profiles.get(session.user_id)
            if profile is not None and profile.onboarding_complete:
                session.profile = profile
                return Event.RETURNING_USER, None
            return Event.UNSEEN_USER, None

        if session.state in ONBOARDING_FIELDS:
            try:
                validate_answer(session.state, text)
            except ValidationError as exc:
                logger.info("Re-prompting %s: %s", session.user_id, exc)
                return Event.BLANK, None
            return Event.ANSWER, None

        profile = await self._active_profile(session)
        if profile is None:
            logger.warning("No stored profile for %s in %s; restarting onboarding", session.user_id, session.state.value)
            session.state = S.NEW
            return Event.UNSEEN_USER, None
        if not text.strip():
            return Event.BLANK, None
        query = await self.extractor.extract(text, profile)
        if query.intent.category == "profile_update":
            return Event.PROFILE_UPDATE, query
        if query.intent.confidence < self.clarification_threshold:
            logger.info("Low intent confidence %.2f for %s; asking to clarify", query.intent.confidence, session.user_id)
            return Event.UNCLEAR_QUERY, query
        return Event.CLEAR_QUERY, query

    async def _active_profile(self, session: ConversationSession) -> Optional[UserProfile]:
        if session.profile is None:
            session.profile = await self.profiles.get(session.user_id)
        return session.profile

    def _prompt(self, state: ConversationState, session: ConversationSession) -> OutgoingMessage:
        return OutgoingMessage(translate(ONBOARDING_FIELDS[state][1], session.language), "notice")

    @staticmethod
    def _store_answer(session: ConversationSession, state: ConversationState, text: str) -> None:
        field_name = ONBOARDING_FIELDS[state][0]
        answer = validate_answer(state, text)
        session.draft[field_name] = normalize_language(answer) if field_name == "language" else answer

    async def _commit(self, session: ConversationSession, platform: str) -> OutgoingMessage:
        draft = session.draft
        profile = UserProfile(
            user_id=session.user_id,
            platform=platform,
            name=draft["name"],
            address=draft["address"],
            city=draft["city"],
            state=draft["state"],
            language=draft["language"],
            onboarding_complete=True,
        )
        await self.profiles.put(session.user_id, profile)
        session.profile = profile
        session.draft = {}
        logger.info("Onboarding complete for %s", session.user_id)
        return OutgoingMessage(translate("onboarding_done", profile.language, name=profile.name), "notice")

    async def _update_profile(self, session: ConversationSession, query: ServiceQuery) -> OutgoingMessage:
        profile = session.profile
        changes = {}
        name = query.entity(EntityKind.PERSON_NAME)
        location = query.entity(EntityKind.LOCATION)
        if name:
            changes["name"] = name
        if location:
            changes["address"] = location
        if not changes:
            session.state = S.AWAITING_CLARIFICATION
            return OutgoingMessage(translate("clarify", query.language), "notice")

        updated = dataclasses.replace(profile, **changes)
        await self.profiles.put(session.user_id, updated)
        session.profile = updated
        logger.info("Updated profile fields %s for %s", sorted(changes), session.user_id)
        return OutgoingMessage(translate("profile_updated", updated.language), "notice")

    async def _resolve(self, session: ConversationSession, query: ServiceQuery, fmt: PlatformFormat) -> List[OutgoingMessage]:
        profile = session.profile
        try:
            recommendation = await self.pipeline.resolve(query, profile)
        except ResolutionExhausted as exc:
            logger.error("Could not resolve %r for %s: %s", query.text, session.user_id, exc)
            return [OutgoingMessage(translate("apology", query.language), "notice")]
        return self.assembler.assemble(recommendation, query.language, fmt)
