"""In-memory sliding window rate limiter for outbound calls."""

from __future__ import annotations

import time
from collections import defaultdict

from recall_engine.exceptions import RateLimitedError
from recall_engine.observability.logger import get_logger

logger = get_logger("rate_limiter")


class SlidingWindowRateLimiter:
    """Tracks request timestamps per key within a sliding window.

    A single process owns one instance per outbound service; the check and
    the append happen without an await in between, so concurrent tasks on
    one event loop cannot both take the last slot.
    """

    def __init__(self, max_requests: int = 60, window_seconds: float = 60.0) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)

    def check(self, key: str = "default") -> bool:
        """Return True if request is allowed, False if rate-limited."""
        now = time.monotonic()
        cutoff = now - self._window_seconds

        self._requests[key] = [t for t in self._requests[key] if t > cutoff]

        if len(self._requests[key]) >= self._max_requests:
            return False

        self._requests[key].append(now)
        return True

    def acquire(self, key: str = "default") -> None:
        """Like check(), but raise RateLimitedError instead of returning False."""
        if not self.check(key):
            logger.warning("rate_limited", key=key, max_requests=self._max_requests)
            raise RateLimitedError(
                f"Rate limit exceeded: {self._max_requests} requests per "
                f"{self._window_seconds:g}s for {key}"
            )
