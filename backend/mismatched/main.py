"""Mismatched game API: app construction, middleware and lifecycle."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mismatched.api.api import api_router
from mismatched.api.dependencies import get_client_ip
from mismatched.core.config import settings
from mismatched.core.exceptions import AppException, RateLimitedError, SubmissionTooFrequentError
from mismatched.services.game_session_service import create_game_session_service
from mismatched.services.rate_limiter import RequestRateLimiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_API_LOG_LINE_MAX = 80


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start maintenance tasks on startup; stop them and the DB pool on shutdown."""
    # ── Startup ──
    background_tasks: list[asyncio.Task] = []
    await _startup(app, background_tasks)
    yield
    # ── Shutdown ──
    await _shutdown(background_tasks)


app = FastAPI(
    title="Mismatched Game API",
    description="Memory-match game backend: timed game sessions, score submission and leaderboard",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# In-memory state, one instance per process. A multi-instance deployment
# needs a shared session backend (see mismatched.storage).
app.state.request_limiter = RequestRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX,
    window_seconds=settings.RATE_LIMIT_WINDOW / 1000,
    max_entries=settings.RATE_LIMIT_MAX_ENTRIES,
)
app.state.game_session_service = create_game_session_service(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
)


@app.middleware("http")
async def rate_limit_api(request: Request, call_next):
    """Apply the per-IP request budget to every /api route."""
    if not request.url.path.startswith("/api"):
        return await call_next(request)

    client_ip = get_client_ip(request)
    allowed, retry_after = request.app.state.request_limiter.check(client_ip)
    if not allowed:
        logger.warning(f"Rate limit exceeded for {client_ip} on {request.method} {request.url.path}")
        exc = RateLimitedError(retry_after)
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
            headers={"Retry-After": str(retry_after)} if retry_after else None,
        )
    return await call_next(request)


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    """Log one line per /api request with status and duration."""
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        duration_ms = int((time.perf_counter() - start) * 1000)
        line = f"{request.method} {request.url.path} {response.status_code} in {duration_ms}ms"
        if len(line) > _API_LOG_LINE_MAX:
            line = line[:_API_LOG_LINE_MAX - 1] + "…"
        logger.info(line)
    return response


# Include API routes
app.include_router(api_router)


# ── Error responses ──

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Render game and API errors as {error, message, details}."""
    headers = None
    if isinstance(exc, SubmissionTooFrequentError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers=headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Map anything unexpected to a 500 INTERNAL_ERROR without a traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred." if not settings.DEBUG else str(exc),
            "details": {},
        },
    )


async def _startup(app: FastAPI, background_tasks: list[asyncio.Task]):
    """Validate configuration and start maintenance tasks."""
    logger.info("Mismatched Game API starting up...")

    config_warnings, config_errors = settings._validate_security_config()

    if not settings.JWT_SECRET_KEY:
        config_warnings.append(
            "JWT_SECRET_KEY is not configured. "
            "Every game request will be rejected with 401 until it is set."
        )

    for warning in config_warnings:
        logger.warning(f"Config Warning: {warning}")

    for error in config_errors:
        logger.error(f"Config Error: {error}")

    if config_errors:
        logger.error("Set DEBUG=true to run locally without production security settings.")
        raise RuntimeError(
            f"Critical security configuration errors ({len(config_errors)} issues). "
            "Check logs for details."
        )

    from mismatched.core.database_async import init_async_db
    await init_async_db()

    logger.info(
        f"Game rules: duration={settings.GAME_DURATION_SECONDS}s, "
        f"min={settings.MIN_GAME_DURATION_SECONDS}s, "
        f"session_expiry={settings.SESSION_EXPIRY_MS}ms, "
        f"max_sessions_per_user={settings.MAX_ACTIVE_SESSIONS_PER_USER}"
    )

    service = app.state.game_session_service
    limiter = app.state.request_limiter

    background_tasks.append(asyncio.create_task(
        _run_periodically("session sweep", settings.SESSION_SWEEP_INTERVAL_SECONDS,
                          service.sessions.sweep_expired)
    ))
    background_tasks.append(asyncio.create_task(
        _run_periodically("rate limiter cleanup", settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS,
                          lambda: limiter.cleanup_expired() + service.guard.cleanup_expired())
    ))
    logger.info("Background maintenance tasks started")


async def _run_periodically(name: str, interval_seconds: float, job: Callable[[], int]):
    """Run job every interval_seconds until cancelled.

    A failing cycle is logged and skipped; the next one runs on schedule.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            cleaned = job()
            if cleaned:
                logger.debug(f"{name}: {cleaned} record(s) removed")
        except Exception as e:
            logger.error(f"Error in {name} task: {e}")


async def _shutdown(background_tasks: list[asyncio.Task]):
    """Cancel maintenance tasks and release the database pool."""
    logger.info("Mismatched Game API shutting down...")

    if background_tasks:
        for task in background_tasks:
            task.cancel()
        await asyncio.gather(*background_tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(background_tasks)} background task(s)")

    from mismatched.core.database_async import close_async_db
    try:
        await close_async_db()
    except Exception as e:
        logger.warning(f"Error closing async database: {e}")

    logger.info("Shutdown complete")


@app.get("/")
def root():
    """Service banner."""
    return {
        "status": "ok",
        "message": "Mismatched Game API is running",
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """Liveness probe."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mismatched.main:app", host="0.0.0.0", port=8000, reload=True)
