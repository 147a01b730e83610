"""Set of open connection sessions, shared by the WebSocket loop and the HTTP thread."""

import threading
from typing import List

from .session import ConnectionSession


class ConnectionRegistry:

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions = set()

    def add(self, session: ConnectionSession):
        with self._lock:
            self._sessions.add(session)

    def discard(self, session: ConnectionSession):
        with self._lock:
            self._sessions.discard(session)

    def snapshot(self) -> List[ConnectionSession]:
        """Copy of the current sessions; safe to iterate while handlers remove themselves."""
        with self._lock:
            return list(self._sessions)

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session):
        with self._lock:
            return session in self._sessions
