"""Game session, submission and score schemas."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import UTCDateTime


class GameSubmission(BaseModel):
    """Client-reported outcome of a finished game.

    Only types and signs are checked here; ranges are enforced by clamping
    against server-side values, not by rejecting the request. Fields the
    server derives itself (bonus, total points) are ignored if sent.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        strict=True,
    )

    score: int = Field(ge=0)
    time_remaining: int = Field(ge=0)
    matches_found: int = Field(ge=0)


class GameStartResponse(BaseModel):
    """Response for POST /games/start."""
    session_id: str
    expires_at: UTCDateTime
    duration_seconds: int


class StoredGame(BaseModel):
    """A persisted game result."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    score: int
    bonus: int
    total_points: int
    time_remaining: int
    matches_found: int
    completed_at: UTCDateTime


class LeaderboardEntry(BaseModel):
    """Per-user aggregate on the leaderboard."""
    user_id: str
    username: str
    wallet_address: str
    profile_image_url: Optional[str] = None
    total_points: int
    games_played: int
    best_score: int


class UserStats(BaseModel):
    """Aggregates over all games of a single user."""
    total_points: int = 0
    games_played: int = 0
    average_score: float = 0.0
    best_score: int = 0
    total_matches: int = 0
