"""
Crowslist Backend — Session Store
===================================

What:  Server-side session state keyed by an opaque token.
Why:   The browser only ever holds a random token in an HttpOnly cookie; the
       user id and email it stands for stay on the server and can be
       revoked by deleting one dict entry.
How:   `SessionStore` is the contract; `InMemorySessionStore` keeps sessions
       in a dict. One store is created per application instance and hung
       on `app.state.session_store`, so each test app gets a clean one.

Expiry:
    Every session carries `expires_at`. A read of an expired session evicts
    it and reports it as absent. With `rolling=True` every successful read
    pushes the expiry out by another TTL; otherwise the expiry is fixed at
    creation.

Scope:
    Sessions live as long as the process. Restarting the API logs everyone
    out, which is acceptable for a single-instance deployment. A
    multi-instance deployment needs a shared implementation of this
    contract (e.g. Redis-backed).
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class Session:
    token: str
    user_id: int
    user_email: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """Contract for session storage backends."""

    @abstractmethod
    def create(self, user_id: int, user_email: str) -> Session:
        """Issue a new session with a fresh random token."""
        ...

    @abstractmethod
    def get(self, token: Optional[str]) -> Optional[Session]:
        """Return the live session for `token`, or None if unknown or expired."""
        ...

    @abstractmethod
    def touch(self, token: Optional[str]) -> Optional[Session]:
        """Push the expiry of a live session out by one TTL."""
        ...

    @abstractmethod
    def destroy(self, token: Optional[str]) -> None:
        """Forget `token`. Unknown tokens are ignored."""
        ...

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop every expired session; returns how many were dropped."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """
    Dict-backed session store.

    Safe under asyncio: every method runs to completion without awaiting,
    so no two requests interleave inside one call.

    Args:
        ttl:     How long a session lives (default 24 hours).
        rolling: Every successful `get` goes through `touch`, refreshing the expiry.
        clock:   Source of "now"; tests pass a controllable clock.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        rolling: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ttl = ttl
        self.rolling = rolling
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def create(self, user_id: int, user_email: str) -> Session:
        now = self._clock()
        # 32 bytes → 43 URL-safe characters, 256 bits of entropy
        token = secrets.token_urlsafe(32)
        session = Session(
            token=token,
            user_id=user_id,
            user_email=user_email,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._sessions[token] = session
        logger.info("Session started for user %d", user_id)
        return session

    def get(self, token: Optional[str]) -> Optional[Session]:
        if self.rolling:
            return self.touch(token)
        return self._live(token)

    def touch(self, token: Optional[str]) -> Optional[Session]:
        session = self._live(token)
        if session is not None:
            session.expires_at = self._clock() + self.ttl
        return session

    def _live(self, token: Optional[str]) -> Optional[Session]:
        """Lookup without refresh; an expired session is evicted here."""
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None

        if session.is_expired(self._clock()):
            del self._sessions[token]
            logger.debug("Evicted expired session for user %d", session.user_id)
            return None
        return session

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("Session ended for user %d", session.user_id)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.debug("Purged %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
