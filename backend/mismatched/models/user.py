"""User account model."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class User(Base):
    """Player account, created by the wallet login flow."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    wallet_address = Column(String(42), unique=True, nullable=False, index=True)  # lowercase 0x address
    username = Column(String(20), unique=True, nullable=False)
    profile_image_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    games = relationship("Game", back_populates="user", cascade="all, delete-orphan")
