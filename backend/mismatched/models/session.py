"""In-memory game session record."""
from dataclasses import dataclass


@dataclass(frozen=True)
class GameSession:
    """A server-issued, single-use ticket for one score submission.

    Timestamps are server wall-clock seconds (time.time()).
    """
    session_id: str
    user_id: str
    started_at: float
    source_ip: str

    def elapsed_seconds(self, now: float) -> float:
        return now - self.started_at

    def is_expired(self, now: float, expiry_seconds: float) -> bool:
        return now - self.started_at > expiry_seconds
