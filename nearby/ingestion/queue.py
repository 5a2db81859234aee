"""
Region refresh queue.

On a full miss the aggregator schedules a background refresh of the region
so the durable store is warm for the next request. Jobs are idempotent per
region and time window: scheduling the same region twice within one window
is a no-op. Processing jobs is outside this package.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 2 * 3600
DEFAULT_MAX_PENDING = 1000


@dataclass(frozen=True)
class RegionRefreshJob:
    """Request to re-ingest one search region."""

    lat: float
    lon: float
    radius_meters: int
    job_id: str
    window: int = 0

    @classmethod
    def for_region(
        cls,
        lat: float,
        lon: float,
        radius_meters: int,
        *,
        now: float,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ) -> "RegionRefreshJob":
        """Build a job whose id is stable for the region within one window."""
        window = int(now // window_seconds)
        job_id = f"refresh:{lat:.4f}:{lon:.4f}:{radius_meters}:{window}"
        return cls(lat=lat, lon=lon, radius_meters=radius_meters, job_id=job_id, window=window)


class RefreshQueue(ABC):
    """Write side of the refresh job queue."""

    window_seconds: float = DEFAULT_WINDOW_SECONDS

    @abstractmethod
    async def enqueue(self, job: RegionRefreshJob) -> bool:
        """
        Schedule ``job``.

        Returns:
            False when a job with the same id is already scheduled

        Raises:
            StoreError: If the queue backend is unavailable
        """
        pass

    def now(self) -> float:
        return time.time()


class InMemoryRefreshQueue(RefreshQueue):
    """
    List-backed queue with duplicate suppression by job id.

    Only ids from the current window are remembered, and at most
    ``max_pending`` undrained jobs are kept (oldest dropped first).
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        if max_pending < 1:
            raise ValueError(f"max_pending must be >= 1, got {max_pending}")
        self.window_seconds = window_seconds
        self.max_pending = max_pending
        self._clock = clock
        self._window = -1
        self._seen: set[str] = set()
        self.jobs: list[RegionRefreshJob] = []

    def now(self) -> float:
        return self._clock()

    async def enqueue(self, job: RegionRefreshJob) -> bool:
        if job.window > self._window:
            # New window: ids from earlier windows can no longer collide
            self._window = job.window
            self._seen.clear()
        if job.job_id in self._seen:
            logger.debug(f"Refresh job {job.job_id} already scheduled")
            return False
        self._seen.add(job.job_id)
        self.jobs.append(job)
        if len(self.jobs) > self.max_pending:
            dropped = self.jobs.pop(0)
            logger.warning(f"Refresh queue full, dropped {dropped.job_id}")
        logger.info(f"Scheduled refresh job {job.job_id}")
        return True

    def drain(self) -> list[RegionRefreshJob]:
        """Hand over pending jobs to a worker and clear the list."""
        jobs, self.jobs = self.jobs, []
        return jobs
