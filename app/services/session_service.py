"""In-memory login sessions."""
import threading
import time
import uuid
from typing import Callable, Dict, Optional

DEFAULT_SESSION_TTL = 60 * 60


class SessionStore:
    """Maps random session IDs to user IDs with a fixed expiry.

    Sessions live only in this process's memory; a restart logs everyone out.
    """

    def __init__(self, ttl: int = DEFAULT_SESSION_TTL,
                 clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str) -> str:
        """Start a session for *user_id* and return its ID."""
        session_id = str(uuid.uuid4())
        with self._lock:
            self._sessions[session_id] = {
                'userId': user_id,
                'expiresAt': self._clock() + self.ttl,
            }
        return session_id

    def get_user_id(self, session_id: Optional[str]) -> Optional[str]:
        """Return the user ID for a live session; expired sessions are dropped."""
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session['expiresAt'] > self._clock():
                return session['userId']
            del self._sessions[session_id]
        return None

    def delete(self, session_id: Optional[str]) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def purge_expired(self) -> int:
        """Remove every expired session.  Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s['expiresAt'] <= now]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
