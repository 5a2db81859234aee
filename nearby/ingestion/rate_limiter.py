"""
Per-connector token bucket.

Each provider connector owns one RateLimiter sized to its source's quota.
The limiter throttles; it never rejects a caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimiterState:
    """Snapshot of a limiter's bucket."""

    tokens: float
    last_refill: float


class RateLimiter:
    """
    Async token bucket.

    Starts full with ``capacity`` tokens and refills at ``refill_rate``
    tokens per second. ``acquire()`` takes one token, sleeping
    ``(1 - available) / refill_rate`` seconds first when the bucket is dry.
    Concurrent acquirers on the same limiter are served one at a time.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")

        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.name = name
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._tokens = self.capacity
        self._last_refill = clock()
        self._lock: asyncio.Lock | None = None

    @property
    def state(self) -> RateLimiterState:
        """Current token count and last refill timestamp."""
        return RateLimiterState(tokens=self._tokens, last_refill=self._last_refill)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def _get_lock(self) -> asyncio.Lock:
        # Created lazily so the limiter can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def wait_seconds(self) -> float:
        """Seconds a caller would wait right now for one token."""
        self._refill()
        if self._tokens >= 1.0:
            return 0.0
        return (1.0 - self._tokens) / self.refill_rate

    async def acquire(self) -> None:
        """Take one token, suspending until one is available."""
        async with self._get_lock():
            wait_s = self.wait_seconds()
            if wait_s > 0:
                logger.debug(f"Rate limiter '{self.name}' throttling for {wait_s:.2f}s")
                await self._sleep(wait_s)
                self._refill()
            self._tokens = max(0.0, self._tokens - 1.0)
