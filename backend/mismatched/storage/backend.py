"""Storage backend protocol for live game sessions.

Defines the interface SessionStore needs from its backing map. A shared
backend (e.g. Redis) is required once more than one API instance serves
traffic; until then sessions live in process memory.
"""

from typing import Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from mismatched.models.session import GameSession


class SessionBackend(Protocol):
    """Protocol defining the storage backend interface for game sessions.

    Implementations:
    - InMemorySessionBackend: Dict-based storage (default)
    """

    def get(self, session_id: str) -> Optional["GameSession"]:
        """Retrieve a session by ID. Returns None if not found."""
        ...

    def put(self, session: "GameSession") -> None:
        """Store a session under its own ID."""
        ...

    def delete(self, session_id: str) -> bool:
        """Delete a session. Returns True if the session existed."""
        ...

    def exists(self, session_id: str) -> bool:
        """Check if a session exists."""
        ...

    def count(self) -> int:
        """Return the number of stored sessions."""
        ...

    def values(self) -> list["GameSession"]:
        """Return a snapshot of all stored sessions."""
        ...
