"""Async engine and per-request sessions for the score database.

SQLite (aiosqlite) by default, PostgreSQL (asyncpg) when DATABASE_URL
points at one. Request handlers get sessions through get_async_db().
"""
import os
from typing import AsyncGenerator
import logging

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

from mismatched.core.config import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.DATABASE_URL_ASYNC.startswith("sqlite")

if _is_sqlite:
    # The SQLite file lives under DATA_DIR, which may not exist on first start
    _db_path = settings.DATABASE_URL_ASYNC.split(":///", 1)[-1]
    _db_dir = os.path.dirname(_db_path)
    if _db_dir and _db_path != ":memory:":
        try:
            os.makedirs(_db_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create database directory {_db_dir}: {e}")

    async_engine: AsyncEngine = create_async_engine(
        settings.DATABASE_URL_ASYNC,
        echo=settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
else:
    # Default QueuePool for server databases
    async_engine: AsyncEngine = create_async_engine(
        settings.DATABASE_URL_ASYNC,
        echo=settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG",
    )

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield one session per request.

    Usage:
        @router.get("/api/leaderboard")
        async def get_leaderboard(db: AsyncSession = Depends(get_async_db)):
            ...

    The session is committed after a successful request and rolled back
    if the endpoint raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_async_db():
    """Create tables if needed.

    Only runs in DEBUG; production schemas are managed by Alembic.
    """
    from mismatched.models.base import Base

    if settings.DEBUG:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Score tables ensured (DEBUG mode)")


async def close_async_db():
    """Close async database connections."""
    await async_engine.dispose()
    logger.info("Async database connections closed")


def _sanitize_db_url(url: str) -> str:
    """Mask the password in a database URL for logging."""
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    if "@" in rest:
        credentials, host_db = rest.split("@", 1)
        if ":" in credentials:
            user, _ = credentials.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
    return url


logger.info(f"Async database configured: {_sanitize_db_url(settings.DATABASE_URL_ASYNC)}")
