"""
Rate limiting for auth endpoints (login, verification codes).
Repeated failures are answered with an exponentially growing back-off.
"""
import time
from collections import defaultdict
from threading import Lock

from messenger.core.config import settings


class BackoffLimiter:
    """
    In-memory limiter keyed by an arbitrary string (usually the email).
    Counts consecutive failures; a success resets the key.
    """

    def __init__(self, max_attempts: int = 5, base_delay: float = 2.0, max_delay: float = 300.0):
        self._attempts = defaultdict(lambda: {"count": 0, "last_time": 0.0})
        self._lock = Lock()

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def _required_delay(self, count: int) -> float:
        return min(self.base_delay * (2 ** (count - self.max_attempts)), self.max_delay)

    def retry_after(self, key: str) -> float:
        """Seconds to wait before the next attempt for ``key`` (0 if allowed now)."""
        with self._lock:
            entry = self._attempts[key]
            if entry["count"] < self.max_attempts:
                return 0.0

            elapsed = time.time() - entry["last_time"]
            return max(0.0, self._required_delay(entry["count"]) - elapsed)

    def is_allowed(self, key: str) -> bool:
        return self.retry_after(key) == 0.0

    def record(self, key: str, success: bool = False) -> None:
        with self._lock:
            entry = self._attempts[key]
            entry["last_time"] = time.time()
            if success:
                entry["count"] = 0
            else:
                entry["count"] += 1

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()


_limiter = BackoffLimiter(max_attempts=settings.LOGIN_MAX_ATTEMPTS)


def is_rate_limited(key: str) -> bool:
    return not _limiter.is_allowed(key)


def record_auth_attempt(key: str, success: bool = False) -> None:
    _limiter.record(key, success=success)


def get_rate_limit_delay(key: str) -> float:
    return _limiter.retry_after(key)


def reset_rate_limits() -> None:
    _limiter.reset()
