"""Per-client request rate limiter for the HTTP API.

Fixed window counter keyed by client IP. Every /api request passes through
check(); the table is swept periodically and also opportunistically when it
grows past max_entries, so churn of client addresses cannot grow it without
bound.
"""
import math
import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Request count for one key within its current window."""
    count: int = 0
    reset_time: float = 0.0


class RequestRateLimiter:
    """In-memory fixed window rate limiter.

    Configuration:
        max_requests: Maximum requests per window (default: 100)
        window_seconds: Window duration (default: 60s)
        max_entries: Table size that triggers eviction (default: 10000)
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = Lock()

    def check(self, key: str) -> Tuple[bool, Optional[int]]:
        """Count a request for key and decide whether it may proceed.

        Never raises; an unknown key is simply a first request.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        now = self._clock()

        with self._lock:
            if len(self._records) > self.max_entries:
                self._evict_locked(now)

            record = self._records.get(key)

            if record is None or now >= record.reset_time:
                self._records[key] = RateLimitRecord(count=1, reset_time=now + self.window_seconds)
                return True, None

            if record.count >= self.max_requests:
                retry_after = max(math.ceil(record.reset_time - now), 1)
                return False, retry_after

            record.count += 1
            return True, None

    def cleanup_expired(self) -> int:
        """Remove records whose window has passed, then trim to max_entries.

        Returns:
            Number of records removed
        """
        now = self._clock()
        with self._lock:
            cleaned = self._evict_locked(now)

        if cleaned > 0:
            logger.debug(f"Cleaned up {cleaned} expired request rate limit records")
        return cleaned

    def _evict_locked(self, now: float) -> int:
        expired_keys = [k for k, v in self._records.items() if v.reset_time <= now]
        for key in expired_keys:
            del self._records[key]
        cleaned = len(expired_keys)

        overflow = len(self._records) - self.max_entries
        if overflow > 0:
            # Oldest windows first
            oldest = sorted(self._records, key=lambda k: self._records[k].reset_time)[:overflow]
            for key in oldest:
                del self._records[key]
            cleaned += len(oldest)
            logger.warning(f"Rate limit table over capacity, evicted {len(oldest)} active records")

        return cleaned

    def __len__(self) -> int:
        return len(self._records)
