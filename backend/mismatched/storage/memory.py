"""In-memory storage backend for game sessions."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from mismatched.models.session import GameSession


class InMemorySessionBackend:
    """Dict-based in-memory session storage with O(1) access.

    Not synchronized; SessionStore serializes access with its own lock.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, "GameSession"] = {}

    def get(self, session_id: str) -> Optional["GameSession"]:
        return self._sessions.get(session_id)

    def put(self, session: "GameSession") -> None:
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def exists(self, session_id: str) -> bool:
        return session_id in self._sessions

    def count(self) -> int:
        return len(self._sessions)

    def values(self) -> list["GameSession"]:
        return list(self._sessions.values())
