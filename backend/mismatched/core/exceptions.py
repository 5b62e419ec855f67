"""Custom exceptions for the application.

Every game-session rejection has its own error code so clients can tell
"wait and retry" apart from "start a new game".
"""
from typing import Optional
from fastapi import status


class AppException(Exception):
    """Base exception for application errors."""

    http_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[dict] = None,
        http_status: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if http_status is not None:
            self.http_status = http_status
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class RateLimitedError(AppException):
    """Raised when a client exceeds the generic per-IP request budget."""

    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after_seconds: Optional[int] = None):
        super().__init__(
            message="Too many requests. Please try again later.",
            code="RATE_LIMITED",
            details={"retry_after_seconds": retry_after_seconds} if retry_after_seconds else {}
        )


class ForbiddenError(AppException):
    """Raised when a user tries to read another user's data."""

    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, code="FORBIDDEN")


class GameSessionException(AppException):
    """Game session and score submission exceptions."""
    pass


class TooManyActiveSessionsError(GameSessionException):
    """Raised when a user already holds the maximum number of live sessions."""

    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, limit: int):
        super().__init__(
            message="Too many active games. Finish or wait for an existing game to expire.",
            code="TOO_MANY_ACTIVE_SESSIONS",
            details={"max_active_sessions": limit}
        )


class MissingSessionError(GameSessionException):
    """Raised when a submission carries no game session id."""

    def __init__(self):
        super().__init__(
            message="Game session id is required",
            code="MISSING_SESSION"
        )


class InvalidOrExpiredSessionError(GameSessionException):
    """Raised when the session id is unknown or has already been used."""

    def __init__(self):
        super().__init__(
            message="Invalid or expired game session",
            code="INVALID_OR_EXPIRED_SESSION"
        )


class SessionOwnershipMismatchError(GameSessionException):
    """Raised when a session is submitted by someone other than its owner."""

    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self):
        super().__init__(
            message="Game session does not belong to this user",
            code="SESSION_OWNERSHIP_MISMATCH"
        )


class TooFastError(GameSessionException):
    """Raised when a game is submitted faster than it can be played."""

    def __init__(self, min_seconds: int):
        super().__init__(
            message="Game completed too quickly",
            code="TOO_FAST",
            details={"min_game_duration_seconds": min_seconds}
        )


class SessionExpiredError(GameSessionException):
    """Raised when a session is submitted after its lifetime ended."""

    def __init__(self):
        super().__init__(
            message="Game session expired. Please start a new game.",
            code="SESSION_EXPIRED"
        )


class IpQuotaExceededError(GameSessionException):
    """Raised when an IP has used up its hourly game submissions."""

    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, limit: int):
        super().__init__(
            message="Too many games submitted from this network. Please try again later.",
            code="IP_QUOTA_EXCEEDED",
            details={"max_games_per_hour": limit}
        )


class SubmissionTooFrequentError(GameSessionException):
    """Raised when a user submits again before the cooldown has elapsed."""

    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message=f"Please wait {retry_after_seconds} seconds before submitting another game",
            code="SUBMISSION_TOO_FREQUENT",
            details={"retry_after_seconds": retry_after_seconds}
        )


class InvalidGameDataError(GameSessionException):
    """Raised when the submitted payload fails schema validation."""

    def __init__(self, errors: Optional[list] = None):
        super().__init__(
            message="Invalid game data",
            code="INVALID_GAME_DATA",
            details={"errors": errors} if errors else {}
        )


class ScoreStorageError(AppException):
    """Raised when a finished game cannot be persisted."""

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self):
        super().__init__(
            message="Failed to save game",
            code="SCORE_STORAGE_FAILED"
        )
