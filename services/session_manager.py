"""
Session Management

Keeps the current Session record for each browser session in memory.
Records are immutable; updates store a new record in place of the old one.
"""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, Optional
from models.schemas import Session
from .errors import SessionNotFoundError


class SessionManager:
    """Stores sessions with expiry and a lock per session"""

    def __init__(self, session_timeout_minutes: int = 60):
        """
        Initialize session manager.

        Args:
            session_timeout_minutes: Minutes of inactivity before a session expires
        """
        self.sessions: Dict[str, Session] = {}
        self.session_timeout = timedelta(minutes=session_timeout_minutes)
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def create_session(self) -> str:
        """
        Create a new session. Expired sessions are swept first.

        Returns:
            session_id: Unique identifier for the session
        """
        self.cleanup_expired_sessions()

        session_id = str(uuid.uuid4())
        with self._registry_lock:
            self.sessions[session_id] = Session(session_id=session_id)
            self._locks[session_id] = threading.RLock()
        return session_id

    def _is_expired(self, session: Session, now: datetime) -> bool:
        # A busy session is never expired out from under its round trip
        return not session.is_busy and now - session.last_updated > self.session_timeout

    def get_session(self, session_id: str) -> Optional[Session]:
        """
        Get an existing session.

        Args:
            session_id: Session identifier

        Returns:
            Session if found and not expired, None otherwise
        """
        with self._registry_lock:
            session = self.sessions.get(session_id)
            if session is None:
                return None

            if self._is_expired(session, datetime.now()):
                self._discard(session_id)
                return None

            return session

    def get_or_create_session(self, session_id: Optional[str] = None) -> tuple[Session, bool]:
        """
        Get existing session or create new one.

        Args:
            session_id: Optional session identifier

        Returns:
            Tuple of (Session, is_new)
        """
        if session_id:
            session = self.get_session(session_id)
            if session:
                return session, False

        new_id = self.create_session()
        return self.sessions[new_id], True

    @contextmanager
    def locked(self, session_id: str):
        """
        Hold the session's lock and yield its current record.

        Raises:
            SessionNotFoundError: If the session does not exist or has expired
        """
        if self.get_session(session_id) is None:
            raise SessionNotFoundError(session_id)
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)
        with lock:
            session = self.sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            yield session

    def save(self, session: Session) -> Session:
        """Store `session` as the current record for its id"""
        with self._registry_lock:
            if session.session_id not in self.sessions:
                raise SessionNotFoundError(session.session_id)
            self.sessions[session.session_id] = session
        return session

    def delete_session(self, session_id: str) -> bool:
        with self._registry_lock:
            if session_id not in self.sessions:
                return False
            self._discard(session_id)
            return True

    def _discard(self, session_id: str) -> None:
        del self.sessions[session_id]
        self._locks.pop(session_id, None)

    def cleanup_expired_sessions(self) -> int:
        """
        Remove all expired sessions.

        Returns:
            Number of sessions cleaned up
        """
        now = datetime.now()
        with self._registry_lock:
            expired_ids = [
                sid for sid, session in self.sessions.items()
                if self._is_expired(session, now)
            ]
            for sid in expired_ids:
                self._discard(sid)

        return len(expired_ids)

    def get_session_count(self) -> int:
        """Get number of active sessions"""
        self.cleanup_expired_sessions()
        return len(self.sessions)
