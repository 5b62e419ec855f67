"""Game session lifecycle and score submission.

A game goes Unstarted -> Active on start(), and Active -> Consumed on a
successful submit(). Sessions that are never submitted become Expired and
are removed by the session sweep. A rejected submission leaves the session
Active unless the rejection is itself the expiry.

Client-reported values are never trusted beyond clamping: the server clock
bounds the remaining time, and the match count bounds the score.
"""
import math
import time
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from mismatched.core.exceptions import (
    InvalidGameDataError,
    InvalidOrExpiredSessionError,
    IpQuotaExceededError,
    MissingSessionError,
    ScoreStorageError,
    SessionExpiredError,
    SessionOwnershipMismatchError,
    SubmissionTooFrequentError,
    TooFastError,
)
from mismatched.models.session import GameSession
from mismatched.schemas.game import GameStartResponse, GameSubmission
from mismatched.services.session_store import SessionStore
from mismatched.services.submission_guard import SubmissionGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameRules:
    """Scoring and timing rules of the memory game."""
    duration_seconds: int = 90
    min_duration_seconds: int = 15
    max_matches: int = 8
    points_per_match: int = 100
    max_score: int = 800
    time_bonus_multiplier: int = 10

    @classmethod
    def from_settings(cls, settings) -> "GameRules":
        return cls(
            duration_seconds=settings.GAME_DURATION_SECONDS,
            min_duration_seconds=settings.MIN_GAME_DURATION_SECONDS,
            max_matches=settings.MAX_MATCHES,
            points_per_match=settings.POINTS_PER_MATCH,
            max_score=settings.MAX_SCORE,
            time_bonus_multiplier=settings.TIME_BONUS_MULTIPLIER,
        )


@dataclass(frozen=True)
class GameResult:
    """Server-trusted outcome of one game, ready to be persisted."""
    user_id: str
    score: int
    bonus: int
    total_points: int
    time_remaining: int
    matches_found: int
    completed_at: datetime


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def sanitize_result(
    rules: GameRules,
    user_id: str,
    submission: GameSubmission,
    elapsed_seconds: float,
    completed_at: datetime,
) -> GameResult:
    """Turn a client-reported game into a server-trusted GameResult.

    The client may report less remaining time than the server clock allows
    (network delay) but never more.
    """
    matches = clamp(submission.matches_found, 0, rules.max_matches)

    reported_remaining = clamp(submission.time_remaining, 0, rules.duration_seconds)
    server_remaining = clamp(
        rules.duration_seconds - round_half_up(elapsed_seconds), 0, rules.duration_seconds
    )
    time_remaining = min(server_remaining, reported_remaining)

    max_from_matches = matches * rules.points_per_match
    score = clamp(min(max_from_matches, submission.score), 0, rules.max_score)

    bonus = time_remaining * rules.time_bonus_multiplier

    return GameResult(
        user_id=user_id,
        score=score,
        bonus=bonus,
        total_points=score + bonus,
        time_remaining=time_remaining,
        matches_found=matches,
        completed_at=completed_at,
    )


def extract_session_id(payload: Any) -> Optional[str]:
    """Read the session id from a submission body (game_id or gameId)."""
    if not isinstance(payload, dict):
        return None
    session_id = payload.get("game_id") or payload.get("gameId")
    if not isinstance(session_id, str) or not session_id.strip():
        return None
    return session_id.strip()


class GameSessionService:
    """Orchestrates session creation and single-use score submission."""

    def __init__(
        self,
        sessions: SessionStore,
        guard: SubmissionGuard,
        rules: Optional[GameRules] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.sessions = sessions
        self.guard = guard
        self.rules = rules or GameRules()
        self._clock = clock

    def start(self, user_id: str, ip: str) -> GameStartResponse:
        """Start a new game session for user_id.

        Raises:
            TooManyActiveSessionsError: user is at the concurrent session cap
        """
        session = self.sessions.create(user_id, ip)
        expires_at = datetime.fromtimestamp(
            session.started_at + self.sessions.expiry_seconds, tz=timezone.utc
        )
        logger.info(f"User {user_id} started a game from {ip}")
        return GameStartResponse(
            session_id=session.session_id,
            expires_at=expires_at,
            duration_seconds=self.rules.duration_seconds,
        )

    async def submit(self, user_id: str, ip: str, session_id: Optional[str], payload: Any, store):
        """Validate, sanitize and persist a finished game.

        Validation short-circuits on the first failure, in this order:
        session present, session known, ownership, minimum duration, expiry,
        IP quota, user cooldown, payload schema.

        Args:
            store: ScoreRecordStore used to persist the result

        Returns:
            The stored Game row
        """
        if not session_id:
            raise MissingSessionError()

        now = self._clock()
        accepted: dict = {}

        def validate(session: GameSession) -> None:
            # Runs under the session store lock: no awaits in here
            if session.user_id != user_id:
                logger.warning(
                    f"User {user_id} tried to submit session owned by {session.user_id} from {ip}"
                )
                raise SessionOwnershipMismatchError()

            elapsed = session.elapsed_seconds(now)
            if elapsed < self.rules.min_duration_seconds:
                logger.warning(f"Rejected too-fast game from user {user_id}: {elapsed:.1f}s")
                raise TooFastError(self.rules.min_duration_seconds)
            if elapsed > self.sessions.expiry_seconds:
                raise SessionExpiredError()

            if not self.guard.check_ip_quota(ip, now):
                logger.warning(f"Hourly submission quota exceeded for {ip}")
                raise IpQuotaExceededError(self.guard.max_per_ip_per_hour)

            allowed, retry_after = self.guard.check_user_cooldown(user_id, now)
            if not allowed:
                raise SubmissionTooFrequentError(retry_after)

            try:
                submission = GameSubmission.model_validate(payload)
            except ValidationError as e:
                raise InvalidGameDataError(
                    [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
                ) from e

            accepted["result"] = sanitize_result(
                self.rules,
                user_id,
                submission,
                elapsed,
                datetime.fromtimestamp(now, tz=timezone.utc),
            )
            accepted["previous_at"] = self.guard.last_submission_at(user_id)
            self.guard.record_submission(user_id, ip, now)

        try:
            session = self.sessions.take_if_valid(session_id, validate)
        except SessionExpiredError:
            self.sessions.remove(session_id)
            logger.info(f"Expired game session submitted by user {user_id}, removed")
            raise

        if session is None:
            raise InvalidOrExpiredSessionError()

        result: GameResult = accepted["result"]
        try:
            game = await store.create_game(result)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save game for user {user_id}: {e}")
            self.sessions.restore(session)
            self.guard.revert_submission(user_id, ip, now, accepted["previous_at"])
            raise ScoreStorageError() from e
        finally:
            self.sessions.release(session_id)

        logger.info(
            f"Game saved for user {user_id}: score={result.score} bonus={result.bonus} "
            f"total={result.total_points} matches={result.matches_found}"
        )
        return game


def create_game_session_service(settings, clock: Callable[[], float] = time.time) -> GameSessionService:
    """Build the session service graph from application settings."""
    sessions = SessionStore(
        expiry_seconds=settings.SESSION_EXPIRY_MS / 1000,
        max_sessions_per_user=settings.MAX_ACTIVE_SESSIONS_PER_USER,
        clock=clock,
    )
    guard = SubmissionGuard(
        cooldown_seconds=settings.USER_SUBMISSION_COOLDOWN_MS / 1000,
        max_per_ip_per_hour=settings.MAX_GAMES_PER_IP_PER_HOUR,
        clock=clock,
    )
    return GameSessionService(
        sessions=sessions,
        guard=guard,
        rules=GameRules.from_settings(settings),
        clock=clock,
    )
