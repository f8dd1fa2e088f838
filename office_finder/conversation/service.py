"""Entry point for inbound messages: sessions plus the per-user in-flight guard."""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from office_finder.conversation.state_machine import ConversationSession, ConversationStateMachine
from office_finder.messaging.assembler import PlatformFormat
from office_finder.messaging.catalog import translate
from office_finder.models import InboundMessage, OutgoingMessage

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory sessions, reset lazily after an idle period."""

    def __init__(self, idle_seconds: int = 1800, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: Dict[str, ConversationSession] = {}
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._last_sweep = clock()

    def get(self, user_id: str) -> ConversationSession:
        now = self._clock()
        if now - self._last_sweep >= self.idle_seconds:
            self._sweep(now)
        session = self._sessions.get(user_id)
        if session is not None and now - session.last_active > self.idle_seconds:
            logger.info("Session for %s idle for %.0fs; starting over", user_id, now - session.last_active)
            session = None
        if session is None:
            session = ConversationSession(user_id=user_id, last_active=now)
            self._sessions[user_id] = session
        return session

    def _sweep(self, now: float) -> None:
        idle = [user_id for user_id, session in self._sessions.items() if now - session.last_active > self.idle_seconds]
        for user_id in idle:
            del self._sessions[user_id]
        self._last_sweep = now
        if idle:
            logger.debug("Dropped %d idle sessions", len(idle))

    def touch(self, session: ConversationSession) -> None:
        session.last_active = self._clock()

    def __len__(self) -> int:
        return len(self._sessions)


class ConversationService:
    """Serializes messages per user; different users proceed concurrently.

    A message arriving while the same user's previous one is still being
    handled waits behind it (asyncio.Lock wakes waiters in FIFO order).
    """

    def __init__(self, machine: ConversationStateMachine, sessions: Optional[SessionStore] = None) -> None:
        self.machine = machine
        self.sessions = sessions if sessions is not None else SessionStore()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    async def handle(self, message: InboundMessage, fmt: Optional[PlatformFormat] = None) -> List[OutgoingMessage]:
        user_id = message.user_id
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._waiting[user_id] = self._waiting.get(user_id, 0) + 1
        try:
            async with lock:
                session = self.sessions.get(user_id)
                try:
                    return await self.machine.handle(session, message, fmt)
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Handling message for %s failed: %s", user_id, exc)
                    return [OutgoingMessage(translate("apology", session.language), "notice")]
                finally:
                    self.sessions.touch(session)
        finally:
            self._waiting[user_id] -= 1
            if not self._waiting[user_id]:
                del self._waiting[user_id]
                self._locks.pop(user_id, None)

    def in_flight(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()
