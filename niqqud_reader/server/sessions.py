"""In-memory reader-session store with TTL cleanup.

WHY: The HTTP API lets a client work on a text across several requests
(toggle vocalization, divide into syllables, walk it unit by unit), so
each client needs its own ReaderSession with its own caches and
navigation position. An in-memory store is sufficient for a single
reader service with no cross-restart requirements.

HOW: SessionStore keeps a dict of SessionEntry keyed by a UUID. Each
entry owns a private MemoryStore, so sessions never see each other's
caches. All mutations hold a threading.Lock. Idle sessions expire after
a TTL measured from their last access.

RULES:
- All store mutations are protected by threading.Lock
- create_session() raises ValueError when max_sessions is reached
- get_session() returns None for unknown IDs and bumps last access
- cleanup_expired() removes sessions idle longer than the TTL
- Session IDs are UUID4 hex strings generated at creation time
- Default TTL is 1 hour (3600 seconds)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from niqqud_reader.api.client import ProviderClient
from niqqud_reader.core.ir import NavigationMode
from niqqud_reader.session import ReaderSession
from niqqud_reader.storage.kv import MemoryStore

logger = logging.getLogger(__name__)

# Idle time after which a session is dropped (seconds)
DEFAULT_TTL_SECONDS = 3600


@dataclass
class SessionEntry:
    """A ReaderSession plus the bookkeeping the API needs.

    RULES:
    - id: UUID4 hex string, immutable after creation
    - last_accessed: bumped on every lookup
    """

    id: str
    session: ReaderSession
    created_at: float
    last_accessed: float


class SessionStore:
    """Thread-safe in-memory store of reader sessions.

    Args:
        ttl_seconds: Idle time before a session expires.
        max_sessions: Upper bound on live sessions.
        client_factory: ProviderClient factory handed to every session.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_sessions: int = 100,
        client_factory: Callable[[], ProviderClient] = ProviderClient,
    ) -> None:
        self._sessions: Dict[str, SessionEntry] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self.client_factory = client_factory

    def create_session(
        self,
        text: str = "",
        navigation_mode: NavigationMode = NavigationMode.WORDS,
    ) -> SessionEntry:
        """Create a session over text with a fresh private store."""
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of concurrent sessions ({}) reached".format(
                        self.max_sessions
                    )
                )
            session_id = uuid.uuid4().hex
            now = time.time()
            entry = SessionEntry(
                id=session_id,
                session=ReaderSession(
                    MemoryStore(),
                    text=text,
                    client_factory=self.client_factory,
                    navigation_mode=navigation_mode,
                ),
                created_at=now,
                last_accessed=now,
            )
            self._sessions[session_id] = entry

        logger.info("Created reader session %s (%d chars)", session_id, len(text))
        return entry

    def get_session(self, session_id: str) -> Optional[SessionEntry]:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is not None:
                entry.last_accessed = time.time()
            return entry

    def list_sessions(self) -> List[SessionEntry]:
        """Snapshot of all sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda e: e.created_at)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        if entry is None:
            return False
        logger.info("Deleted reader session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove sessions idle for longer than the TTL. Returns the count."""
        now = time.time()
        expired: List[SessionEntry] = []
        with self._lock:
            for session_id, entry in list(self._sessions.items()):
                if now - entry.last_accessed > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for entry in expired:
            logger.info("Expired reader session %s (idle %.0fs)", entry.id, now - entry.last_accessed)
        return len(expired)
