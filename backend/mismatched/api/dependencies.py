"""FastAPI dependency injection functions."""
import ipaddress
import logging
from fastapi import Header, HTTPException, Cookie, Depends, Request
from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
import jwt

from mismatched.core.auth import verify_token
from mismatched.core.config import settings
from mismatched.core.database_async import get_async_db
from mismatched.services.game_session_service import GameSessionService
from mismatched.services.score_store import ScoreRecordStore

logger = logging.getLogger(__name__)


def _is_trusted_proxy(ip: str) -> bool:
    """Check if the given IP is in the trusted proxies list."""
    if not settings.TRUSTED_PROXIES:
        return False
    try:
        client_ip = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for proxy in settings.TRUSTED_PROXIES:
        try:
            # Support both single IPs and CIDR notation
            if '/' in proxy:
                if client_ip in ipaddress.ip_network(proxy, strict=False):
                    return True
            elif client_ip == ipaddress.ip_address(proxy):
                return True
        except ValueError:
            continue
    return False


def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request, handling proxies securely.

    X-Forwarded-For/X-Real-IP are only honoured when the direct peer is in
    TRUSTED_PROXIES; otherwise any client could pick its own quota bucket.
    """
    direct_ip = request.client.host if request.client else "unknown"

    if direct_ip != "unknown" and _is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Take the first IP (original client)
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return direct_ip


def _extract_bearer_token(authorization: str) -> Optional[str]:
    """Extract JWT token from 'Authorization: Bearer <token>' header."""
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


async def get_current_user(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
) -> Dict:
    """
    Dependency to get the authenticated user from a JWT token.

    Authorization header takes precedence over the access_token cookie.

    Returns:
        Decoded token payload; always contains user_id

    Raises:
        HTTPException: 401 if token is missing, invalid, expired or has no user_id
    """
    token = None
    if authorization:
        token = _extract_bearer_token(authorization)
        if not token:
            raise HTTPException(
                status_code=401,
                detail="Invalid authorization header format. Expected: Bearer <token>",
                headers={"WWW-Authenticate": "Bearer"}
            )
    elif access_token:
        token = access_token

    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing authentication credentials",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        payload = verify_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=401,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=401,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"}
        )
    except ValueError:
        # JWT_SECRET_KEY unset: no token can be verified
        logger.error("Rejecting authenticated request: JWT_SECRET_KEY is not configured")
        raise HTTPException(
            status_code=401,
            detail="Authentication is not available",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_id = payload.get("user_id")
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(
            status_code=401,
            detail="User authentication required. Please log in.",
            headers={"WWW-Authenticate": "Bearer"}
        )

    return payload


def get_game_session_service(request: Request) -> GameSessionService:
    """The process-wide session service stored on app.state."""
    return request.app.state.game_session_service


def get_score_store(db: AsyncSession = Depends(get_async_db)) -> ScoreRecordStore:
    return ScoreRecordStore(db)
