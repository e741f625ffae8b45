from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import List, Optional

from teal_dash.core.composer import AppDefinition
from teal_dash.core.session import Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 256


class SessionManager:
    """
    Keeps one Session per browser session id.

    Sessions are created lazily on the first callback that carries a new id
    and evicted least-recently-used beyond `max_sessions`. A session is never
    shared between ids.
    """

    def __init__(self, definition: AppDefinition, max_sessions: int = DEFAULT_MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be >= 1, got {max_sessions}")
        self.definition = definition
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session

    def get_or_create(self, session_id: str) -> Session:
        """
        Return the session for `session_id`, starting a new one if needed.
        """
        if not session_id:
            raise ValueError("session_id must be a non-empty string")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
                return session

            session = self.definition.start_session(session_id=session_id)
            self._sessions[session_id] = session
            evicted = self._evict()

        for old in evicted:
            old.close()
        return session

    def _evict(self) -> List[Session]:
        evicted = []
        while len(self._sessions) > self.max_sessions:
            session_id, session = self._sessions.popitem(last=False)
            logger.info("session_evicted", extra={"session_id": session_id})
            evicted.append(session)
        return evicted

    def close(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
