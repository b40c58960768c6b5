"""
Rate limiting utilities.

Fixed-window, in-memory rate limiting for single-instance deployments.
Used to throttle manual domain verification attempts.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from ..errors import RateLimitError


@dataclass(slots=True, frozen=True)
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: float  # Clock timestamp when the window resets
    retry_after: Optional[float] = None  # Seconds until reset


@dataclass(slots=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests: int = 10  # Number of requests allowed
    window: int = 60  # Time window in seconds
    key_prefix: str = "ratelimit"
    max_keys: int = 1024  # Expired entries are purged past this size


class InMemoryRateLimiter:
    """
    Fixed-window rate limiter.

    Not suitable for distributed systems: each worker keeps its own
    counters.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._data: Dict[str, Tuple[int, float]] = {}
        self._lock = Lock()

    def _key(self, key: str) -> str:
        return f"{self.config.key_prefix}:{key}"

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        now = self._clock()
        full_key = self._key(key)

        with self._lock:
            if len(self._data) >= self.config.max_keys:
                self._purge_expired(now)
            count, reset_at = self._data.get(full_key, (0, now + self.config.window))
            if now >= reset_at:
                # Window expired, reset
                count, reset_at = 0, now + self.config.window
            count += 1
            self._data[full_key] = (count, reset_at)

        allowed = count <= self.config.requests
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, self.config.requests - count),
            reset_at=reset_at,
            retry_after=None if allowed else max(0.0, reset_at - now),
        )

    def check(self, key: str) -> RateLimitResult:
        """Like ``hit`` but raises when the limit is exceeded.

        Raises:
            RateLimitError: If ``key`` is over its limit for this window.
        """
        result = self.hit(key)
        if not result.allowed:
            raise RateLimitError(
                f"Too many attempts. Try again in {int(result.retry_after or 0) + 1} seconds",
                retry_after=result.retry_after,
            )
        return result

    def reset(self, key: str) -> None:
        """Reset counter for key."""
        with self._lock:
            self._data.pop(self._key(key), None)

    def _purge_expired(self, now: float) -> None:
        # Caller holds the lock
        expired = [k for k, (_, reset_at) in self._data.items() if now >= reset_at]
        for k in expired:
            del self._data[k]
