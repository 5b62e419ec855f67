"""Pytest configuration and fixtures for backend tests."""
import os
import uuid
import atexit
import tempfile
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
_test_db_path = os.path.join(tempfile.gettempdir(), f"mismatched_test_{os.getpid()}.db")
os.environ["DEBUG"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_path}"

from mismatched.core.auth import create_user_token
from mismatched.core.config import settings
from mismatched.core.database_async import AsyncSessionLocal, async_engine
from mismatched.main import app
from mismatched.models import Base, Game, User
from mismatched.services.game_session_service import create_game_session_service
from mismatched.services.rate_limiter import RequestRateLimiter


def _cleanup_test_db():
    """Remove test database file on exit."""
    try:
        if os.path.exists(_test_db_path):
            os.remove(_test_db_path)
    except OSError:
        pass


atexit.register(_cleanup_test_db)


class FakeClock:
    """Manually advanced wall clock for time-dependent tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def sync_engine():
    """Sync engine on the same SQLite file the app's async engine uses."""
    engine = create_engine(
        f"sqlite:///{_test_db_path}",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(sync_engine) -> Generator[Session, None, None]:
    """Database session for seeding; tables are emptied after each test."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.execute(delete(Game))
        session.execute(delete(User))
        session.commit()
        session.close()


@pytest.fixture
def make_user(db_session):
    """Create a user row and return (user_id, auth headers)."""

    def _make_user(username: str = None):
        user_id = str(uuid.uuid4())
        username = username or f"user_{user_id[:8]}"
        db_session.add(User(
            id=user_id,
            wallet_address="0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8],
            username=username,
        ))
        db_session.commit()
        return user_id, {"Authorization": f"Bearer {create_user_token(user_id)}"}

    return _make_user


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def game_service(clock):
    """Session service wired to the fake clock, with default game rules."""
    return create_game_session_service(settings, clock=clock)


# ============================================================================
# Application Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def client(sync_engine, game_service) -> Generator[TestClient, None, None]:
    """Test client with fresh in-memory state driven by the fake clock."""
    original_service = app.state.game_session_service
    original_limiter = app.state.request_limiter
    app.state.game_session_service = game_service
    app.state.request_limiter = RequestRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX,
        window_seconds=settings.RATE_LIMIT_WINDOW / 1000,
    )
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.game_session_service = original_service
        app.state.request_limiter = original_limiter


@pytest_asyncio.fixture(scope="function")
async def async_db(db_session) -> AsyncGenerator[AsyncSession, None]:
    """Async session on the application's engine, for store-level tests."""
    async with AsyncSessionLocal() as session:
        yield session
    # The pooled aiosqlite connection must not outlive this test's event loop
    await async_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(sync_engine, game_service) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; ASGITransport does not run the app lifespan."""
    original_service = app.state.game_session_service
    original_limiter = app.state.request_limiter
    app.state.game_session_service = game_service
    app.state.request_limiter = RequestRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX,
        window_seconds=settings.RATE_LIMIT_WINDOW / 1000,
    )
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.state.game_session_service = original_service
        app.state.request_limiter = original_limiter
        await async_engine.dispose()
