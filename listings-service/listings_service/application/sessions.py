"""
In-memory registry of browse sessions

Each session owns one PaginationController and therefore one cache. Idle
sessions expire after a TTL; the least recently used one is evicted when
the registry is full.
"""
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from ..config import settings
from ..domain.errors import SessionNotFoundError
from ..domain.fetcher import IBatchFetcher
from .controller import PaginationController

logger = logging.getLogger(__name__)


@dataclass
class BrowseSession:
    id: str
    controller: PaginationController
    created_at: float = field(default_factory=time.time)
    last_seen_at: float = field(default_factory=time.time)


class SessionRegistry:
    """Session-scoped controllers keyed by an opaque id"""

    def __init__(
        self,
        fetcher: IBatchFetcher,
        ttl_seconds: Optional[int] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self._fetcher = fetcher
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        self._max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions
        if self._max_sessions < 1:
            raise ValueError("max_sessions must be positive")
        self._clock = clock
        self._sessions: "OrderedDict[str, BrowseSession]" = OrderedDict()
        self._stats: Dict[str, int] = {"created": 0, "expired": 0, "evicted": 0, "closed": 0}

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def create(
        self,
        page_size: Optional[int] = None,
        batch_size: Optional[int] = None
    ) -> BrowseSession:
        """Open a new session in the landing state"""
        self.purge_expired()
        while len(self._sessions) >= self._max_sessions:
            oldest_id, _ = next(iter(self._sessions.items()))
            self._drop(oldest_id)
            self._stats["evicted"] += 1
            logger.info(f"Evicted least recently used session {oldest_id}")

        now = self._clock()
        session = BrowseSession(
            id=uuid.uuid4().hex,
            controller=PaginationController(
                self._fetcher,
                page_size=page_size,
                batch_size=batch_size,
            ),
            created_at=now,
            last_seen_at=now,
        )
        self._sessions[session.id] = session
        self._stats["created"] += 1
        logger.info(f"Created browse session {session.id}")
        return session

    def get(self, session_id: str) -> BrowseSession:
        """Look up a live session and mark it as recently used"""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        now = self._clock()
        if self._is_expired(session, now):
            self._drop(session_id)
            self._stats["expired"] += 1
            raise SessionNotFoundError(session_id)

        session.last_seen_at = now
        self._sessions.move_to_end(session_id)
        return session

    def close(self, session_id: str) -> None:
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        self._drop(session_id)
        self._stats["closed"] += 1
        logger.info(f"Closed browse session {session_id}")

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self._drop(session_id)

    def purge_expired(self) -> int:
        """Drop sessions idle for longer than the TTL"""
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for session_id in expired:
            self._drop(session_id)
        if expired:
            self._stats["expired"] += len(expired)
            logger.info(f"Expired {len(expired)} idle browse sessions")
        return len(expired)

    def _is_expired(self, session: BrowseSession, now: float) -> bool:
        return self._ttl > 0 and now - session.last_seen_at > self._ttl

    def _drop(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.controller.close()
