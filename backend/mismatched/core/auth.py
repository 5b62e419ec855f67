"""JWT authentication utilities.

Login flows (wallet signature, OAuth, email codes) issue these tokens; the
game core only ever sees the ``user_id`` claim.
"""
import jwt
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict
from mismatched.core.config import settings


def create_user_token(user_id: str) -> str:
    """
    Create JWT token for a logged-in user.

    Args:
        user_id: User ID from users table

    Returns:
        JWT token string
    """
    if not settings.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY not configured")

    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "token_type": "user",
        "jti": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Dict:
    """
    Verify and decode JWT token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Token is invalid
    """
    if not settings.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY not configured")

    return jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM]
    )
