"""
Tool: Rate Limiter
Purpose: Fixed-window request throttling per key (usually a user id)

Each limiter is a plain object. The API app builds one per area when it
starts and keeps them on app.state, so tests get fresh limiters from a
fresh app and can call reset() between cases.

Usage:
    limiter = RateLimiter(window_seconds=60, max_requests=60)
    if limiter.is_limited(user_id):
        raise RateLimitedError("Too many requests")

Configuration:
    rate_limits section of args/adhder.yaml
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

MAX_BUCKETS = 10_000
# Extra buckets evicted when the cap is hit, so eviction is not per-request
EVICTION_MARGIN = 1_000


@dataclass
class _Bucket:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window counter.

    The first request from a key opens a window; further requests in the
    window are counted and anything past max_requests is limited.
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 20,
        clock: Callable[[], float] = time.monotonic,
        max_buckets: int = MAX_BUCKETS,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_buckets = max_buckets
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}

    def is_limited(self, key: str) -> bool:
        """Count one request for `key`; True if it is over the limit."""
        now = self._clock()
        bucket = self._buckets.get(key)

        if bucket is None or now > bucket.reset_at:
            self._cap_size()
            self._buckets.pop(key, None)
            self._buckets[key] = _Bucket(count=1, reset_at=now + self.window_seconds)
            return False

        bucket.count += 1
        return bucket.count > self.max_requests

    def get_remaining(self, key: str) -> int:
        bucket = self._buckets.get(key)
        if bucket is None or self._clock() > bucket.reset_at:
            return self.max_requests
        return max(0, self.max_requests - bucket.count)

    def retry_after(self, key: str) -> int:
        """Seconds until the key's window resets (0 if not limited)."""
        bucket = self._buckets.get(key)
        if bucket is None:
            return 0
        return max(0, int(bucket.reset_at - self._clock()) + 1)

    def cleanup(self) -> int:
        """Drop expired buckets. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, bucket in self._buckets.items() if now > bucket.reset_at]
        for key in expired:
            del self._buckets[key]
        if len(expired) > 100:
            logger.info(f"Rate limiter cleanup: removed {len(expired)} expired buckets")
        return len(expired)

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def _cap_size(self) -> None:
        if len(self._buckets) < self.max_buckets:
            return
        self.cleanup()
        if len(self._buckets) < self.max_buckets:
            return
        # dicts keep insertion order, so the oldest windows come first
        to_remove = len(self._buckets) - self.max_buckets + min(EVICTION_MARGIN, self.max_buckets)
        for key in list(self._buckets)[:to_remove]:
            del self._buckets[key]
        logger.info(f"Rate limiter: capped map size, removed {to_remove} entries")


def build_rate_limiters(
    config: dict[str, Any],
    clock: Callable[[], float] = time.monotonic,
) -> dict[str, RateLimiter]:
    """One limiter per entry in the config's rate_limits section."""
    limiters = {}
    for name, settings in (config.get("rate_limits") or {}).items():
        settings = settings or {}
        limiters[name] = RateLimiter(
            window_seconds=float(settings.get("window_seconds", 60)),
            max_requests=int(settings.get("max_requests", 20)),
            clock=clock,
        )
    return limiters


__all__ = ["MAX_BUCKETS", "RateLimiter", "build_rate_limiters"]
