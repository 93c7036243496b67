"""
Per-client-IP token bucket rate limiter.

Each client key owns a bucket with capacity = max_requests that refills
continuously at max_requests / window_seconds tokens per second. A request
spends one token and is rejected when fewer than one remains. Buckets not
seen for max_idle seconds are removed by a periodic reaper.
"""

from __future__ import annotations

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from slowapi.util import get_remote_address
from starlette.requests import Request

from shared.config.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CLEANUP_INTERVAL = 300  # 5 minutes
DEFAULT_MAX_IDLE = 600  # 10 minutes


@dataclass(slots=True)
class _Bucket:
    tokens: float
    last_seen: float


def client_key(request: Request) -> str:
    """Rate-limit key for a request: the client IP address."""
    return get_remote_address(request)


class TokenBucketLimiter:
    """
    Token bucket limiter keyed by client identifier.

    All bucket updates happen under a single lock; the critical section
    is O(1) per request.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the rate limiter.

        Args:
            max_requests: Bucket capacity.
            window_seconds: Time to refill an empty bucket completely.
            clock: Monotonic time source, injectable for tests.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self._capacity = float(max_requests)
        self._window_seconds = window_seconds
        self._rate = max_requests / window_seconds
        self._clock = clock

        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._reaper_task: asyncio.Task | None = None

        # Metrics
        self._total_allowed = 0
        self._total_rejected = 0
        self._total_reaped = 0

    @property
    def max_requests(self) -> int:
        return int(self._capacity)

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def rate(self) -> float:
        """Refill rate in tokens per second."""
        return self._rate

    @property
    def tracked_count(self) -> int:
        """Number of buckets currently held."""
        return len(self._buckets)

    def allow(self, key: str) -> bool:
        """
        Spend one token from the key's bucket.

        Returns:
            True if the request is admitted, False if rate limited.
        """
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                # New client: full bucket minus the request being admitted
                self._buckets[key] = _Bucket(tokens=self._capacity - 1, last_seen=now)
                self._total_allowed += 1
                return True

            elapsed = max(0.0, now - bucket.last_seen)
            bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._rate)
            bucket.last_seen = now

            if bucket.tokens < 1:
                self._total_rejected += 1
                return False

            bucket.tokens -= 1
            self._total_allowed += 1
            return True

    def retry_after(self, key: str) -> int:
        """Seconds until the key's bucket holds one full token again."""
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.tokens >= 1:
                return 0
            missing = 1 - bucket.tokens
        return max(1, math.ceil(missing / self._rate))

    def cleanup_stale(self, max_idle: float = DEFAULT_MAX_IDLE) -> int:
        """
        Remove buckets not seen for max_idle seconds.

        Returns:
            Number of buckets removed.
        """
        cutoff = self._clock() - max_idle
        with self._lock:
            stale = [key for key, b in self._buckets.items() if b.last_seen < cutoff]
            for key in stale:
                del self._buckets[key]
            self._total_reaped += len(stale)
        if stale:
            logger.debug("Rate limiter buckets reaped", count=len(stale), remaining=len(self._buckets))
        return len(stale)

    async def _reap_forever(self, interval: float, max_idle: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup_stale(max_idle)

    def start_reaper(
        self,
        interval: float = DEFAULT_CLEANUP_INTERVAL,
        max_idle: float = DEFAULT_MAX_IDLE,
    ) -> asyncio.Task:
        """Start the periodic cleanup task on the running event loop."""
        if self._reaper_task is None or self._reaper_task.done():
            self._reaper_task = asyncio.create_task(self._reap_forever(interval, max_idle))
        return self._reaper_task

    async def stop_reaper(self) -> None:
        """Cancel the cleanup task and wait for it to finish."""
        task, self._reaper_task = self._reaper_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def reset(self) -> None:
        """Drop all buckets."""
        with self._lock:
            self._buckets.clear()

    def get_stats(self) -> dict[str, int | float]:
        """Get rate limiter statistics."""
        return {
            "tracked": len(self._buckets),
            "max_requests": int(self._capacity),
            "window_seconds": self._window_seconds,
            "total_allowed": self._total_allowed,
            "total_rejected": self._total_rejected,
            "total_reaped": self._total_reaped,
        }
