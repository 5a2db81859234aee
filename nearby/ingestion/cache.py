"""
Region result cache.

The aggregator stores the JSON-encoded fan-out result of one search region
under ``events:{lat:.4f}:{lon:.4f}:{radius}`` with a randomized TTL, so that
regions cached at the same moment do not all expire together.
"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 600
MAX_TTL_SECONDS = 1800


def region_cache_key(lat: float, lon: float, radius_meters: int) -> str:
    """Cache key for a search region (coordinates rounded to 4 decimals)."""
    return f"events:{lat:.4f}:{lon:.4f}:{radius_meters}"


def random_ttl(
    min_seconds: int = MIN_TTL_SECONDS,
    max_seconds: int = MAX_TTL_SECONDS,
    rng: random.Random | None = None,
) -> int:
    """Pick a TTL uniformly in ``[min_seconds, max_seconds]``."""
    return (rng or random).randint(min_seconds, max_seconds)


class CacheStore(ABC):
    """
    Key/value store for serialized region results.

    Implementations raise CacheError on backend failures; callers degrade
    to a miss.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the payload, or None when absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, payload: str, ttl_seconds: int) -> None:
        """Store ``payload`` for ``ttl_seconds``."""
        pass

    @abstractmethod
    async def ttl_remaining(self, key: str) -> int | None:
        """Whole seconds left before ``key`` expires, or None if absent."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass


@dataclass
class _Entry:
    payload: str
    expires_at: float


class InMemoryCacheStore(CacheStore):
    """
    Process-local cache with lazy expiry.

    Entries are evicted the first time they are read after expiring.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self.hits = 0
        self.misses = 0

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        entry = self._live_entry(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry.payload

    async def set(self, key: str, payload: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._entries[key] = _Entry(payload=payload, expires_at=self._clock() + ttl_seconds)

    async def ttl_remaining(self, key: str) -> int | None:
        entry = self._live_entry(key)
        if entry is None:
            return None
        return max(0, int(entry.expires_at - self._clock()))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry and reset statistics."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict:
        """Size and hit/miss counters."""
        total = self.hits + self.misses
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 1) if total > 0 else 0.0,
        }
