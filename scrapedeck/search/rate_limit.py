"""Per-client, per-engine fixed-window rate limiting."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    limit: int
    reset_at: float


@dataclass(slots=True)
class _Bucket:
    count: int
    reset_at: float


class EngineRateLimiter:
    """Fixed-window counters keyed by client address and engine."""

    def __init__(
        self,
        *,
        max_requests: int = 60,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._buckets: dict[tuple[str, str], _Bucket] = {}

    def hit(self, client: str, engine: str) -> RateLimitResult:
        """Count one request and report whether it fits in the current window."""
        now = self._clock()
        key = (client, engine)
        bucket = self._buckets.get(key)
        if bucket is None or now >= bucket.reset_at:
            bucket = _Bucket(count=0, reset_at=now + self.window_s)
            self._buckets[key] = bucket
            self._prune(now)

        if bucket.count >= self.max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=self.max_requests,
                reset_at=bucket.reset_at,
            )

        bucket.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=self.max_requests - bucket.count,
            limit=self.max_requests,
            reset_at=bucket.reset_at,
        )

    def _prune(self, now: float) -> None:
        expired = [key for key, bucket in self._buckets.items() if now >= bucket.reset_at]
        for key in expired:
            del self._buckets[key]
