"""
assistant/session.py

Conversation sessions and the store that owns them.

Classes:
- Session: one conversation (history, theme, current city, last access time).
- SessionStore: abstract store interface the orchestrator depends on.
- InMemorySessionStore: process-local store with bounded history and inactivity expiry.

Every store operation goes through `get`, which refreshes `last_accessed`. A session is only
reaped after a real idle gap, whichever code path touched it last.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)

MAX_HISTORY_LENGTH = 8  # 4 user/model exchanges
INACTIVITY_TIMEOUT_SECONDS = 30 * 60


@dataclass
class Session:
    id: str
    history: list[dict[str, str]] = field(default_factory=list)  # list of {role, content}
    theme: str | None = None
    current_city: str | None = None
    last_accessed: float = 0.0


class SessionStore(ABC):
    """Storage contract for conversation sessions.

    Mutating operations on an unknown id are silent no-ops.
    """

    @abstractmethod
    def create(self) -> str:
        """Allocate a new empty session and return its id."""

    @abstractmethod
    def get(self, session_id: str | None) -> Session | None:
        """Return the session and mark it as accessed now, or None."""

    @abstractmethod
    def append_exchange(self, session_id: str, user_text: str, model_payload) -> None:
        """Record a user turn followed by the serialized model payload."""

    @abstractmethod
    def set_theme(self, session_id: str, theme: str) -> None:
        ...

    @abstractmethod
    def set_current_city(self, session_id: str, city: str) -> None:
        ...

    @abstractmethod
    def sweep(self, now: float | None = None) -> int:
        """Remove sessions idle for longer than the inactivity timeout; return how many."""

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock used to serialize turns on one session."""

    def current_city(self, session_id: str | None) -> str | None:
        session = self.get(session_id)
        return session.current_city if session else None


class InMemorySessionStore(SessionStore):
    def __init__(
        self,
        max_history_length: int = MAX_HISTORY_LENGTH,
        inactivity_timeout: float = INACTIVITY_TIMEOUT_SECONDS,
        clock=time.time,
    ):
        self.max_history_length = max_history_length
        self.inactivity_timeout = inactivity_timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._mutex = threading.Lock()

    def __len__(self):
        with self._mutex:
            return len(self._sessions)

    def __contains__(self, session_id):
        with self._mutex:
            return session_id in self._sessions

    def create(self) -> str:
        with self._mutex:
            session_id = uuid.uuid4().hex
            while session_id in self._sessions:
                session_id = uuid.uuid4().hex
            self._sessions[session_id] = Session(id=session_id, last_accessed=self._clock())
        logger.debug("Created session %s", session_id)
        return session_id

    def get(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        with self._mutex:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            self._touch(session)
            return session

    def _touch(self, session: Session) -> None:
        now = self._clock()
        # keep the timestamp strictly increasing on coarse clocks
        if now <= session.last_accessed:
            now = math.nextafter(session.last_accessed, math.inf)
        session.last_accessed = now

    def append_exchange(self, session_id: str, user_text: str, model_payload) -> None:
        session = self.get(session_id)
        if session is None:
            logger.debug("append_exchange: session %s not found", session_id)
            return
        content = json.dumps(model_payload, ensure_ascii=False)
        with self._mutex:
            session.history.append({"role": "user", "content": user_text})
            session.history.append({"role": "model", "content": content})
            overflow = len(session.history) - self.max_history_length
            if overflow > 0:
                del session.history[:overflow]

    def set_theme(self, session_id: str, theme: str) -> None:
        session = self.get(session_id)
        if session is None:
            logger.debug("set_theme: session %s not found", session_id)
            return
        previous, session.theme = session.theme, theme
        logger.debug("Session %s theme %r -> %r", session_id, previous, theme)

    def set_current_city(self, session_id: str, city: str) -> None:
        session = self.get(session_id)
        if session is None:
            logger.debug("set_current_city: session %s not found", session_id)
            return
        previous, session.current_city = session.current_city, city
        logger.debug("Session %s city %r -> %r", session_id, previous, city)

    def sweep(self, now: float | None = None) -> int:
        if now is None:
            now = self._clock()
        with self._mutex:
            snapshot = list(self._sessions.items())
        stale = [sid for sid, s in snapshot if now - s.last_accessed > self.inactivity_timeout]

        removed = 0
        with self._mutex:
            for sid in stale:
                session = self._sessions.get(sid)
                # re-check: the session may have been touched since the snapshot
                if session is None or now - session.last_accessed <= self.inactivity_timeout:
                    continue
                del self._sessions[sid]
                self._locks.pop(sid, None)
                removed += 1
            remaining = len(self._sessions)
        if removed:
            logger.info("Session sweep removed %d inactive session(s), %d remaining", removed, remaining)
        return removed

    def lock(self, session_id: str) -> asyncio.Lock:
        with self._mutex:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = asyncio.Lock()
            return lock
