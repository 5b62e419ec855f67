"""Registry of live game sessions.

A session is created when a player starts a game and consumed by the one
score submission it authorizes. Abandoned sessions are removed by a periodic
sweep once they are older than the session expiry.
"""
import secrets
import time
import logging
from typing import Callable, Optional
from threading import Lock

from mismatched.core.exceptions import TooManyActiveSessionsError
from mismatched.models.session import GameSession
from mismatched.storage import SessionBackend, create_backend

logger = logging.getLogger(__name__)

_SESSION_ID_BYTES = 24


class SessionStore:
    """Thread-safe session registry with a per-user cap and TTL sweep.

    Every read-modify-write on the backend happens under one lock, so a
    session can be taken by at most one caller.
    """

    def __init__(
        self,
        expiry_seconds: float = 150.0,
        max_sessions_per_user: int = 3,
        backend: Optional[SessionBackend] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.expiry_seconds = expiry_seconds
        self.max_sessions_per_user = max_sessions_per_user
        self._backend = backend if backend is not None else create_backend()
        self._clock = clock
        self._lock = Lock()
        # Taken sessions whose submission is still being persisted; they keep
        # holding a slot of the per-user cap until released or restored
        self._pending: dict[str, GameSession] = {}

    def create(self, user_id: str, source_ip: str) -> GameSession:
        """Register a new session for user_id.

        Raises:
            TooManyActiveSessionsError: user already holds the maximum number
                of unexpired sessions
        """
        now = self._clock()
        with self._lock:
            active = self._count_live_locked(user_id, now)
            if active >= self.max_sessions_per_user:
                logger.warning(
                    f"Session cap reached for user {user_id}: "
                    f"{active}/{self.max_sessions_per_user} active"
                )
                raise TooManyActiveSessionsError(self.max_sessions_per_user)

            session_id = self._new_session_id_locked()
            session = GameSession(
                session_id=session_id,
                user_id=user_id,
                started_at=now,
                source_ip=source_ip,
            )
            self._backend.put(session)

        logger.debug(f"Game session {session_id[:8]}... started for user {user_id}")
        return session

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._backend.get(session_id)

    def remove(self, session_id: str) -> bool:
        """Delete a session. Safe to call for unknown or already removed ids."""
        with self._lock:
            return self._backend.delete(session_id)

    def restore(self, session: GameSession) -> None:
        """Put back a session that was taken but could not be consumed."""
        with self._lock:
            self._pending.pop(session.session_id, None)
            if not self._backend.exists(session.session_id):
                self._backend.put(session)

    def release(self, session_id: str) -> None:
        """Drop the cap slot of a taken session. No-op after restore()."""
        with self._lock:
            self._pending.pop(session_id, None)

    def take_if_valid(
        self,
        session_id: str,
        validate: Callable[[GameSession], None],
    ) -> Optional[GameSession]:
        """Atomically look up, validate and remove a session.

        validate runs under the store lock and signals rejection by raising;
        the session then stays in the store and the exception propagates.
        A taken session still counts towards its owner's cap until the
        caller calls release() or restore().

        Returns:
            The removed session, or None if session_id is unknown
        """
        with self._lock:
            session = self._backend.get(session_id)
            if session is None:
                return None
            validate(session)
            self._backend.delete(session_id)
            self._pending[session_id] = session
            return session

    def active_count(self, user_id: str) -> int:
        """Number of unexpired sessions held by user_id."""
        now = self._clock()
        with self._lock:
            return self._count_live_locked(user_id, now)

    def sweep_expired(self) -> int:
        """Remove every session older than the expiry.

        A no-op on an empty or clean store.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        removed = 0

        with self._lock:
            for session in self._backend.values():
                try:
                    if session.is_expired(now, self.expiry_seconds):
                        self._backend.delete(session.session_id)
                        removed += 1
                except (AttributeError, TypeError) as e:
                    logger.error(f"Skipping malformed game session during sweep: {e}")

        if removed > 0:
            logger.info(f"Session sweep: {removed} expired game session(s) removed")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return self._backend.count()

    def _count_live_locked(self, user_id: str, now: float) -> int:
        return sum(
            1 for s in [*self._backend.values(), *self._pending.values()]
            if s.user_id == user_id and not s.is_expired(now, self.expiry_seconds)
        )

    def _new_session_id_locked(self) -> str:
        while True:
            session_id = secrets.token_urlsafe(_SESSION_ID_BYTES)
            if not self._backend.exists(session_id):
                return session_id
