"""Application configuration.

Uses Pydantic BaseSettings for declarative environment variable binding.
Security settings are composed from config_security.SecurityConfig.
"""
import os
import logging
from typing import Any, Optional
from pathlib import Path
from dotenv import load_dotenv

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config_security import SecurityConfig

logger = logging.getLogger(__name__)

__all__ = ["settings", "Settings", "ENV_FILE_PATH", "ENV_FILE_LOADED"]

# Resolved .env path used at startup
ENV_FILE_PATH: Optional[Path] = None
ENV_FILE_LOADED: bool = False


def _find_env_file() -> Optional[Path]:
    """Find .env file from multiple possible locations."""
    global ENV_FILE_PATH, ENV_FILE_LOADED
    current_file = Path(__file__).resolve()
    possible_paths = [
        current_file.parent.parent.parent / '.env',
        current_file.parent.parent.parent.parent / '.env',
        Path.cwd() / '.env',
    ]

    for env_path in possible_paths:
        if env_path.exists():
            ENV_FILE_PATH = env_path
            ENV_FILE_LOADED = True
            logger.info(f"Found .env at: {env_path}")
            return env_path

    logger.debug("No .env file found - using environment variables and defaults")
    return None


# Pre-load .env so that all BaseSettings subclasses can read from it.
_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path, override=False)


def _derive_async_database_url(url: str) -> str:
    """Derive async database URL from sync URL."""
    if "+aiosqlite" in url or "+asyncpg" in url:
        return url
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Time-based tunables keep the unit in their name: *_MS values are
    milliseconds, *_SECONDS values are seconds.
    """

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Application settings ---
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "/app/data" if os.path.exists("/app") else "data"

    # --- Database configuration ---
    DATABASE_URL: Optional[str] = None  # Computed in validator if not set
    DATABASE_URL_ASYNC: str = ""

    # --- Generic API rate limiting (per client IP) ---
    RATE_LIMIT_WINDOW: int = 60_000
    RATE_LIMIT_MAX: int = 100
    RATE_LIMIT_MAX_ENTRIES: int = 10_000

    # --- Game rules ---
    GAME_DURATION_SECONDS: int = 90
    MIN_GAME_DURATION_SECONDS: int = 15
    MAX_MATCHES: int = 8
    POINTS_PER_MATCH: int = 100
    MAX_SCORE: int = 800
    TIME_BONUS_MULTIPLIER: int = 10

    # --- Game sessions and submission limits ---
    SESSION_EXPIRY_MS: int = 150_000
    MAX_ACTIVE_SESSIONS_PER_USER: int = 3
    USER_SUBMISSION_COOLDOWN_MS: int = 5_000
    MAX_GAMES_PER_IP_PER_HOUR: int = 100

    # --- Background maintenance ---
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 60

    # --- Read endpoints ---
    LEADERBOARD_LIMIT: int = 10
    USER_GAMES_LIMIT: int = 50

    # --- Composed sub-config (initialized in validator) ---
    _security: SecurityConfig = SecurityConfig()

    # --- Security attributes copied from SecurityConfig ---
    TRUSTED_PROXIES: Any = ""  # str from env, overwritten to list[str] by validator
    CORS_ORIGINS: Any = "*"  # str from env, overwritten to list[str] by validator
    CORS_ALLOW_CREDENTIALS: bool = False
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    @model_validator(mode="after")
    def _initialize_composed_configs(self) -> "Settings":
        """Derive computed values and check game tunables for consistency."""
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{self.DATA_DIR}/mismatched.db"
        self.DATABASE_URL_ASYNC = _derive_async_database_url(self.DATABASE_URL)

        self._validate_game_settings()

        self._security = SecurityConfig()
        self.TRUSTED_PROXIES = self._security._trusted_proxies_list
        self.CORS_ORIGINS = self._security._cors_origins_list
        self.CORS_ALLOW_CREDENTIALS = self._security._cors_allow_credentials_bool
        self.JWT_SECRET_KEY = self._security.JWT_SECRET_KEY
        self.JWT_ALGORITHM = self._security.JWT_ALGORITHM
        self.JWT_EXPIRE_MINUTES = self._security.JWT_EXPIRE_MINUTES

        return self

    def _validate_game_settings(self) -> None:
        positive = (
            "RATE_LIMIT_WINDOW", "RATE_LIMIT_MAX", "RATE_LIMIT_MAX_ENTRIES",
            "GAME_DURATION_SECONDS", "MAX_MATCHES", "POINTS_PER_MATCH",
            "SESSION_EXPIRY_MS", "MAX_ACTIVE_SESSIONS_PER_USER",
            "MAX_GAMES_PER_IP_PER_HOUR", "SESSION_SWEEP_INTERVAL_SECONDS",
            "RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "LEADERBOARD_LIMIT", "USER_GAMES_LIMIT",
        )
        for name in positive:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        non_negative = (
            "MIN_GAME_DURATION_SECONDS", "MAX_SCORE",
            "TIME_BONUS_MULTIPLIER", "USER_SUBMISSION_COOLDOWN_MS",
        )
        for name in non_negative:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

        if self.MIN_GAME_DURATION_SECONDS * 1000 > self.SESSION_EXPIRY_MS:
            raise ValueError(
                "MIN_GAME_DURATION_SECONDS must not exceed SESSION_EXPIRY_MS; "
                "no submission could ever be accepted"
            )

    def _validate_security_config(self) -> tuple[list[str], list[str]]:
        """Validate security-critical configuration at startup."""
        return self._security.validate_security()


settings = Settings()
