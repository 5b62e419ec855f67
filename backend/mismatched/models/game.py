"""Finished game records used for the leaderboard and profile stats."""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class Game(Base):
    """One accepted score submission. Rows are never updated."""
    __tablename__ = "games"

    __table_args__ = (
        Index("idx_games_user_completed", "user_id", "completed_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    score = Column(Integer, nullable=False)  # +100 per match
    bonus = Column(Integer, nullable=False)  # time_remaining * 10
    total_points = Column(Integer, nullable=False)  # score + bonus
    time_remaining = Column(Integer, nullable=False)  # seconds left, server-clamped
    matches_found = Column(Integer, nullable=False)  # pairs matched (0-8)
    completed_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    user = relationship("User", back_populates="games")
