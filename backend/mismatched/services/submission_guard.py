"""Score submission limits.

Two gates sit in front of crediting a finished game:
- per-user cooldown between accepted submissions
- per-IP quota of accepted submissions within the trailing hour

Both are only charged by record_submission(), which the game session
service calls once a submission has passed every validation step. Rejected
or invalid submissions therefore never spend cooldown or quota; floods of
invalid requests are bounded only by the generic request rate limiter.
"""
import math
import time
import logging
from typing import Callable, Dict, Optional, Tuple
from threading import Lock

logger = logging.getLogger(__name__)

QUOTA_WINDOW_SECONDS = 3600


class SubmissionGuard:
    """Per-user cooldown and per-IP hourly quota for game submissions.

    Configuration:
        cooldown_seconds: Minimum spacing between a user's submissions (default: 5s)
        max_per_ip_per_hour: Accepted submissions per IP per trailing hour (default: 100)
    """

    def __init__(
        self,
        cooldown_seconds: float = 5.0,
        max_per_ip_per_hour: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.max_per_ip_per_hour = max_per_ip_per_hour
        self._clock = clock
        self._last_submission: Dict[str, float] = {}
        self._ip_submissions: Dict[str, list[float]] = {}
        self._lock = Lock()

    def check_user_cooldown(self, user_id: str, now: Optional[float] = None) -> Tuple[bool, Optional[int]]:
        """Check whether user_id may submit again.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = self._clock() if now is None else now

        with self._lock:
            last = self._last_submission.get(user_id)
            if last is None:
                return True, None

            elapsed = now - last
            if elapsed < self.cooldown_seconds:
                retry_after = math.ceil(self.cooldown_seconds - elapsed)
                return False, max(retry_after, 1)

            return True, None

    def check_ip_quota(self, ip: str, now: Optional[float] = None) -> bool:
        """Check whether ip is below its hourly submission quota."""
        now = self._clock() if now is None else now
        cutoff = now - QUOTA_WINDOW_SECONDS

        with self._lock:
            if ip not in self._ip_submissions:
                return True

            # Drop timestamps that left the window
            timestamps = [t for t in self._ip_submissions[ip] if t > cutoff]
            self._ip_submissions[ip] = timestamps

            return len(timestamps) < self.max_per_ip_per_hour

    def record_submission(self, user_id: str, ip: str, now: Optional[float] = None) -> None:
        """Charge an accepted submission against both trackers."""
        now = self._clock() if now is None else now
        cutoff = now - QUOTA_WINDOW_SECONDS

        with self._lock:
            self._last_submission[user_id] = now
            timestamps = [t for t in self._ip_submissions.get(ip, []) if t > cutoff]
            timestamps.append(now)
            self._ip_submissions[ip] = timestamps

    def revert_submission(self, user_id: str, ip: str, recorded_at: float, previous_at: Optional[float]) -> None:
        """Undo record_submission() for a submission that could not be stored.

        Args:
            recorded_at: The timestamp passed to record_submission()
            previous_at: The user's last submission before that one, if any
        """
        with self._lock:
            if self._last_submission.get(user_id) == recorded_at:
                if previous_at is None:
                    del self._last_submission[user_id]
                else:
                    self._last_submission[user_id] = previous_at

            timestamps = self._ip_submissions.get(ip)
            if timestamps and recorded_at in timestamps:
                timestamps.remove(recorded_at)
                if not timestamps:
                    del self._ip_submissions[ip]

    def last_submission_at(self, user_id: str) -> Optional[float]:
        with self._lock:
            return self._last_submission.get(user_id)

    def cleanup_expired(self) -> int:
        """Clean up records that can no longer affect a decision.

        Returns:
            Number of records cleaned up
        """
        now = self._clock()
        quota_cutoff = now - QUOTA_WINDOW_SECONDS
        cooldown_cutoff = now - self.cooldown_seconds
        cleaned = 0

        with self._lock:
            stale_users = [u for u, t in self._last_submission.items() if t <= cooldown_cutoff]
            for user_id in stale_users:
                del self._last_submission[user_id]
            cleaned += len(stale_users)

            for ip in list(self._ip_submissions):
                timestamps = [t for t in self._ip_submissions[ip] if t > quota_cutoff]
                if timestamps:
                    self._ip_submissions[ip] = timestamps
                else:
                    del self._ip_submissions[ip]
                    cleaned += 1

        if cleaned > 0:
            logger.debug(f"Cleaned up {cleaned} expired submission tracking records")
        return cleaned
