from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

In-process session registry for conversation histories.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable

from ..llms.errors import SessionNotFoundError
from ..llms.types import ProviderMessage
from .models import Session, new_id, now_s

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Process-local map of sessions keyed by id.

    Nothing survives a restart. Sessions are replaced wholesale on every
    mutation, so snapshots handed out by `get`/`list` never change underneath
    the caller.
    """

    def __init__(
        self,
        *,
        ttl_s: float | None = None,
        clock: Callable[[], float] = now_s,
    ) -> None:
        if ttl_s is not None and ttl_s <= 0:
            raise ValueError("ttl_s must be greater than 0 when provided")
        self._ttl_s = ttl_s
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # last_active_at as it was before the newest append
        self._prior_activity: dict[str, float] = {}

    def create(self, topic: str = "General") -> Session:
        now = self._clock()
        session = Session(
            id=new_id(),
            topic=topic,
            created_at=now,
            last_active_at=now,
        )
        self._sessions[session.id] = session
        logger.debug("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list(self) -> list[Session]:
        """Sessions ordered by `last_active_at`, most recent first."""
        return sorted(
            self._sessions.values(),
            key=lambda session: session.last_active_at,
            reverse=True,
        )

    def delete(self, session_id: str) -> bool:
        self._locks.pop(session_id, None)
        self._prior_activity.pop(session_id, None)
        existed = self._sessions.pop(session_id, None) is not None
        if existed:
            logger.debug("Deleted session %s", session_id)
        return existed

    def clear(self) -> None:
        self._sessions.clear()
        self._locks.clear()
        self._prior_activity.clear()

    def append(self, session_id: str, message: ProviderMessage) -> Session:
        session = self.require(session_id)
        self._prior_activity[session_id] = session.last_active_at
        updated = replace(
            session,
            messages=(*session.messages, message),
            last_active_at=self._clock(),
        )
        self._sessions[session_id] = updated
        return updated

    def remove_last(self, session_id: str, expected: ProviderMessage) -> bool:
        """
        Drop the newest message if it is `expected`.

        Used to roll back a user turn the provider never answered, so
        `last_active_at` goes back to its value before that append. Returns
        False when the session is gone or its tail is a different message.
        """
        session = self._sessions.get(session_id)
        if session is None or not session.messages:
            return False
        if session.messages[-1] is not expected:
            return False
        self._sessions[session_id] = replace(
            session,
            messages=session.messages[:-1],
            last_active_at=self._prior_activity.pop(
                session_id, session.last_active_at
            ),
        )
        return True

    def lock_for(self, session_id: str) -> asyncio.Lock:
        """Per-session lock used to serialize sends to one conversation."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def evict_expired(self) -> int:
        """Delete sessions idle for longer than `ttl_s`. No-op without a TTL."""
        if self._ttl_s is None:
            return 0
        cutoff = self._clock() - self._ttl_s
        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if session.last_active_at < cutoff
        ]
        for session_id in expired:
            self.delete(session_id)
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
