"""Security settings for the game API.

Covers the values that decide who a request belongs to: JWT verification,
browser origins, and which peers may speak for the client IP that keys
rate limits and submission quotas.
"""
import ipaddress
import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Symmetric algorithms only: tokens are issued and verified with one secret
SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")
MIN_JWT_SECRET_LENGTH = 32


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _resolve_allow_credentials(origins: list[str], raw: str) -> bool:
    """Decide Access-Control-Allow-Credentials from origins and the raw flag.

    "auto" enables credentials for an explicit origin list. A wildcard origin
    never allows them; browsers would reject the response anyway.
    """
    if origins == ["*"]:
        return False
    flag = raw.strip().lower()
    if flag == "auto":
        return True
    return flag in ("true", "1", "yes")


def _invalid_proxy_entries(entries: list[str]) -> list[str]:
    invalid = []
    for entry in entries:
        try:
            if "/" in entry:
                ipaddress.ip_network(entry, strict=False)
            else:
                ipaddress.ip_address(entry)
        except ValueError:
            invalid.append(entry)
    return invalid


class SecurityConfig(BaseSettings):
    """JWT, CORS and proxy trust settings, read from the environment."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DEBUG: bool = False

    # Comma-separated IPs or CIDRs allowed to set X-Forwarded-For / X-Real-IP
    TRUSTED_PROXIES: str = ""

    # Comma-separated origins, or "*"
    CORS_ORIGINS: str = "*"
    # "auto", "true" or "false"
    CORS_ALLOW_CREDENTIALS: str = "auto"

    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    _trusted_proxies_list: list[str] = []
    _cors_origins_list: list[str] = []
    _cors_allow_credentials_bool: bool = False

    @model_validator(mode="after")
    def _parse_lists(self) -> "SecurityConfig":
        self._trusted_proxies_list = _split_csv(self.TRUSTED_PROXIES)
        self._cors_origins_list = (
            ["*"] if self.CORS_ORIGINS.strip() == "*" else _split_csv(self.CORS_ORIGINS)
        )
        self._cors_allow_credentials_bool = _resolve_allow_credentials(
            self._cors_origins_list, self.CORS_ALLOW_CREDENTIALS
        )
        return self

    def validate_security(self) -> tuple[list[str], list[str]]:
        """Check the settings before the API starts serving.

        DEBUG skips every check so local runs work without a .env file.

        Returns:
            Tuple of (warnings, errors); any error should abort startup
        """
        warnings: list[str] = []
        errors: list[str] = []

        if self.DEBUG:
            return warnings, errors

        if self._cors_origins_list == ["*"]:
            errors.append(
                "CORS_ORIGINS='*' is not allowed in production. "
                "List the game frontend origins explicitly."
            )

        if len(self.JWT_SECRET_KEY) < MIN_JWT_SECRET_LENGTH:
            errors.append(
                f"JWT_SECRET_KEY must be at least {MIN_JWT_SECRET_LENGTH} characters in production. "
                'Generate with: python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )

        if self.JWT_ALGORITHM not in SUPPORTED_JWT_ALGORITHMS:
            errors.append(
                f"JWT_ALGORITHM={self.JWT_ALGORITHM} is not supported; "
                f"use one of {', '.join(SUPPORTED_JWT_ALGORITHMS)}"
            )

        if self.JWT_EXPIRE_MINUTES <= 0:
            errors.append("JWT_EXPIRE_MINUTES must be positive")

        invalid_proxies = _invalid_proxy_entries(self._trusted_proxies_list)
        if invalid_proxies:
            errors.append(f"TRUSTED_PROXIES contains invalid entries: {', '.join(invalid_proxies)}")
        elif not self._trusted_proxies_list:
            warnings.append(
                "TRUSTED_PROXIES is empty. X-Forwarded-For will be ignored and the "
                "direct peer address is used for rate limiting and submission quotas."
            )

        return warnings, errors
