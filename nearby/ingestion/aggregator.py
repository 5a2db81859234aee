"""
Event Aggregator.

Answers "what is happening around this point" by combining every configured
provider connector behind a region cache:

1. Region cache (randomized TTL)
2. Durable store, if events for the region were refreshed recently
3. Live fan-out to the connectors, run concurrently with per-connector jitter

One connector failing never fails the aggregation.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from nearby.errors import CacheError, ProviderError, StoreError
from nearby.geo.distance import bounding_box
from nearby.monitoring.metrics import (
    AGGREGATION_SOURCE,
    PROVIDER_CALLS,
    PROVIDER_DURATION,
    MetricsRegistry,
)
from nearby.schemas.event import UnifiedEvent

from .adapters.base_adapter import ProviderConnector
from .cache import MAX_TTL_SECONDS, MIN_TTL_SECONDS, CacheStore, random_ttl, region_cache_key
from .deduplication import EventDeduplicator, IdentityDeduplicator
from .queue import RefreshQueue, RegionRefreshJob
from .store import EventStore

logger = logging.getLogger(__name__)

DEFAULT_JITTER_RANGE = (0.05, 0.2)
DEFAULT_FRESHNESS_HOURS = 2.0
MIN_STEP_SECONDS = 0.05

T = TypeVar("T")


@dataclass
class AggregationResult:
    """Combined candidates for one region plus where they came from."""

    events: list[UnifiedEvent]
    providers: list[str]
    cached: bool
    failed_providers: list[str] = field(default_factory=list)
    source: str = "providers"


class EventAggregator:
    """
    Fan-out over provider connectors with caching.

    All collaborators are injected; ``store`` and ``refresh_queue`` are
    optional.
    """

    def __init__(
        self,
        connectors: list[ProviderConnector],
        cache: CacheStore,
        store: EventStore | None = None,
        refresh_queue: RefreshQueue | None = None,
        deduplicator: EventDeduplicator | None = None,
        *,
        jitter_range: tuple[float, float] = DEFAULT_JITTER_RANGE,
        ttl_range: tuple[int, int] = (MIN_TTL_SECONDS, MAX_TTL_SECONDS),
        freshness_hours: float = DEFAULT_FRESHNESS_HOURS,
        rng: random.Random | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        self.connectors = list(connectors)
        self.cache = cache
        self.store = store
        self.refresh_queue = refresh_queue
        self.deduplicator = deduplicator or IdentityDeduplicator()
        self.jitter_range = jitter_range
        self.ttl_range = ttl_range
        self.freshness_hours = freshness_hours
        self.metrics = metrics or MetricsRegistry()
        self._rng = rng or random.Random()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def search(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        timeout: float | None = None,
    ) -> AggregationResult:
        """
        Collect candidates around ``(lat, lon)``.

        Args:
            timeout: Upper bound in seconds for the whole search. Cache, store
                and queue calls that overrun it count as a miss or a skip;
                connectors still running at the deadline are cancelled and
                count as failed

        Returns:
            AggregationResult (never raises because of a connector)
        """
        deadline = None
        if timeout is not None:
            deadline = asyncio.get_running_loop().time() + timeout
        key = region_cache_key(lat, lon, radius_meters)

        cached = await self._bounded(self._read_cache(key), deadline, f"Cache read for {key}")
        if cached is not None:
            logger.info(f"Cache hit for {key} ({len(cached.events)} events)")
            self.metrics.inc(AGGREGATION_SOURCE, labels={"source": "cache"})
            return cached

        if self.store is not None:
            stored = await self._bounded(
                self._read_store(lat, lon, radius_meters), deadline, "Event store lookup"
            )
            if stored:
                providers = list(dict.fromkeys(e.provider for e in stored))
                await self._bounded(
                    self._write_cache(key, stored, providers), deadline, f"Cache write for {key}"
                )
                logger.info(f"Store hit for {key} ({len(stored)} events)")
                self.metrics.inc(AGGREGATION_SOURCE, labels={"source": "store"})
                return AggregationResult(
                    events=stored, providers=providers, cached=False, source="store"
                )
            await self._bounded(
                self._schedule_refresh(lat, lon, radius_meters), deadline, "Refresh scheduling"
            )

        events, providers, failed = await self._fan_out(
            lat, lon, radius_meters, start_time, end_time, self._remaining(deadline)
        )
        events = self.deduplicator.deduplicate(events)
        await self._bounded(
            self._write_cache(key, events, providers), deadline, f"Cache write for {key}"
        )

        logger.info(
            f"Aggregated {len(events)} events for {key}",
            extra={"payload": {"providers": providers, "failed_providers": failed}},
        )
        self.metrics.inc(AGGREGATION_SOURCE, labels={"source": "providers"})
        return AggregationResult(
            events=events,
            providers=providers,
            cached=False,
            failed_providers=failed,
            source="providers",
        )

    async def invalidate(self, lat: float, lon: float, radius_meters: int) -> None:
        """Drop the cached result for a region."""
        key = region_cache_key(lat, lon, radius_meters)
        try:
            await self.cache.delete(key)
            logger.info(f"Cache invalidated for {key}")
        except CacheError as e:
            logger.error(f"Cache invalidation failed for {key}: {e}")

    # ========================================================================
    # FAN-OUT
    # ========================================================================

    async def _fan_out(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
        timeout: float | None,
    ) -> tuple[list[UnifiedEvent], list[str], list[str]]:
        active = []
        for connector in self.connectors:
            if connector.is_configured():
                active.append(connector)
            else:
                logger.info(f"Connector {connector.name} not configured, skipping")

        if not active:
            return [], [], []

        tasks = [
            asyncio.create_task(
                self._run_connector(connector, lat, lon, radius_meters, start_time, end_time),
                name=f"connector-{connector.name}",
            )
            for connector in active
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            # Also runs when the caller cancels the search
            unfinished = [task for task in tasks if not task.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        events: list[UnifiedEvent] = []
        providers: list[str] = []
        failed: list[str] = []

        # Results are read back in connector order
        for connector, task in zip(active, tasks):
            labels = {"provider": connector.name}
            if task in pending or task.cancelled():
                logger.warning(f"Connector {connector.name} timed out after {timeout}s")
                self.metrics.inc(PROVIDER_CALLS, labels={**labels, "status": "timeout"})
                failed.append(connector.name)
                continue
            error = task.exception()
            if error is not None:
                logger.warning(
                    f"Connector {connector.name} failed: {error}",
                    exc_info=None if isinstance(error, ProviderError) else error,
                )
                self.metrics.inc(PROVIDER_CALLS, labels={**labels, "status": "error"})
                failed.append(connector.name)
                continue
            self.metrics.inc(PROVIDER_CALLS, labels={**labels, "status": "ok"})
            events.extend(task.result())
            providers.append(connector.name)

        return events, providers, failed

    async def _run_connector(
        self,
        connector: ProviderConnector,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> list[UnifiedEvent]:
        # Desynchronize bursts against the same source
        jitter = self._rng.uniform(*self.jitter_range)
        await asyncio.sleep(jitter)
        with self.metrics.timer(PROVIDER_DURATION, labels={"provider": connector.name}):
            return await connector.search(lat, lon, radius_meters, start_time, end_time)

    # ========================================================================
    # DEADLINE
    # ========================================================================

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(0.0, deadline - asyncio.get_running_loop().time())

    async def _bounded(self, awaitable: Awaitable[T], deadline: float | None, what: str) -> T | None:
        """Await ``awaitable`` within the deadline; None when it overruns."""
        if deadline is None:
            return await awaitable
        # Every step gets a short floor so an exhausted deadline still
        # lets non-blocking backends answer
        timeout = max(MIN_STEP_SECONDS, self._remaining(deadline))
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{what} timed out after {timeout:.2f}s")
            return None

    # ========================================================================
    # CACHE / STORE / QUEUE
    # ========================================================================

    async def _read_cache(self, key: str) -> AggregationResult | None:
        try:
            payload = await self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if payload is None:
            return None

        try:
            data = json.loads(payload)
            events = [UnifiedEvent.model_validate(item) for item in data["events"]]
            providers = [str(p) for p in data.get("providers", [])]
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

        return AggregationResult(events=events, providers=providers, cached=True, source="cache")

    async def _write_cache(self, key: str, events: list[UnifiedEvent], providers: list[str]) -> None:
        payload = json.dumps(
            {"providers": providers, "events": [event.to_wire() for event in events]}
        )
        ttl = random_ttl(*self.ttl_range, rng=self._rng)
        try:
            await self.cache.set(key, payload, ttl)
            logger.debug(f"Cached {key} for {ttl}s")
        except CacheError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def _read_store(self, lat: float, lon: float, radius_meters: int) -> list[UnifiedEvent]:
        box = bounding_box(lat, lon, radius_meters, buffer_factor=1.0)
        try:
            events = await self.store.find_fresh(box, self.freshness_hours)
        except StoreError as e:
            logger.warning(f"Event store lookup failed: {e}")
            return []
        return self.deduplicator.deduplicate(events)

    async def _schedule_refresh(self, lat: float, lon: float, radius_meters: int) -> None:
        if self.refresh_queue is None:
            return
        job = RegionRefreshJob.for_region(
            lat,
            lon,
            radius_meters,
            now=self.refresh_queue.now(),
            window_seconds=self.refresh_queue.window_seconds,
        )
        try:
            await self.refresh_queue.enqueue(job)
        except StoreError as e:
            logger.warning(f"Failed to schedule refresh job {job.job_id}: {e}")
