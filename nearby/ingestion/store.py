"""
Durable fallback store.

Events ingested by background refresh jobs are persisted in PostgreSQL. On a
cache miss the aggregator asks the store for recently-updated events in the
search region before paying for a live fan-out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import psycopg2

from nearby.errors import StoreError
from nearby.schemas.event import UnifiedEvent, Venue
from nearby.schemas.geo import BoundingBox

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


class EventStore(ABC):
    """Read side of the durable event store."""

    @abstractmethod
    async def find_fresh(
        self,
        bounding_box: BoundingBox,
        updated_within_hours: float,
        limit: int = DEFAULT_LIMIT,
    ) -> list[UnifiedEvent]:
        """
        Events inside ``bounding_box`` updated within the freshness window.

        Venue-less events cannot be placed in a region and are never
        returned. Results are ordered by popularity, highest first.

        Raises:
            StoreError: If the backend cannot be queried
        """
        pass


class InMemoryEventStore(EventStore):
    """Dict-backed store keyed by identity, used in tests and local runs."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._rows: dict[tuple[str, str], tuple[UnifiedEvent, float]] = {}

    def upsert(self, events: Iterable[UnifiedEvent], updated_at: float | None = None) -> int:
        """Insert or replace events, stamping them with ``updated_at``."""
        stamp = self._clock() if updated_at is None else updated_at
        count = 0
        for event in events:
            self._rows[event.identity] = (event, stamp)
            count += 1
        return count

    async def find_fresh(
        self,
        bounding_box: BoundingBox,
        updated_within_hours: float,
        limit: int = DEFAULT_LIMIT,
    ) -> list[UnifiedEvent]:
        cutoff = self._clock() - updated_within_hours * 3600
        fresh = [
            event
            for event, stamp in self._rows.values()
            if stamp > cutoff
            and event.venue is not None
            and bounding_box.contains(event.venue.lat, event.venue.lon)
        ]
        fresh.sort(key=lambda e: e.popularity, reverse=True)
        return fresh[:limit]

    def __len__(self) -> int:
        return len(self._rows)


FIND_FRESH_SQL = """
    SELECT
        e.provider,
        e.provider_id,
        e.title,
        e.description,
        e.category,
        e.start_at,
        e.end_at,
        e.url,
        e.popularity_score,
        p.name,
        p.address,
        p.lat,
        p.lon
    FROM events e
    JOIN places p ON e.venue_id = p.id
    WHERE e.updated_at > %s
      AND p.lat BETWEEN %s AND %s
      AND p.lon BETWEEN %s AND %s
    ORDER BY e.popularity_score DESC NULLS LAST
    LIMIT %s
"""


class PostgresEventStore(EventStore):
    """
    PostgreSQL-backed store.

    psycopg2 is blocking, so each query runs in a worker thread with its own
    short-lived connection.
    """

    def __init__(self, connection_params: dict, connect: Callable = psycopg2.connect) -> None:
        """
        Args:
            connection_params: psycopg2 connection arguments
                (see ``Settings.get_psycopg2_params``)
            connect: Connection factory, overridable in tests
        """
        self.connection_params = connection_params
        self._connect = connect

    async def find_fresh(
        self,
        bounding_box: BoundingBox,
        updated_within_hours: float,
        limit: int = DEFAULT_LIMIT,
    ) -> list[UnifiedEvent]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=updated_within_hours)
        params = (
            cutoff,
            bounding_box.min_lat,
            bounding_box.max_lat,
            bounding_box.min_lon,
            bounding_box.max_lon,
            limit,
        )
        rows = await asyncio.to_thread(self._query, params)
        return self._rows_to_events(rows)

    def _query(self, params: tuple) -> list[tuple]:
        try:
            conn = self._connect(**self.connection_params)
        except psycopg2.Error as e:
            raise StoreError(f"Could not connect to event store: {e}") from e
        try:
            with conn.cursor() as cur:
                cur.execute(FIND_FRESH_SQL, params)
                return cur.fetchall()
        except psycopg2.Error as e:
            raise StoreError(f"Event store query failed: {e}") from e
        finally:
            conn.close()

    def _rows_to_events(self, rows: list[tuple]) -> list[UnifiedEvent]:
        events = []
        for row in rows:
            (
                provider,
                provider_id,
                title,
                description,
                category,
                start_at,
                end_at,
                url,
                popularity,
                venue_name,
                venue_address,
                venue_lat,
                venue_lon,
            ) = row
            try:
                venue = None
                if venue_lat is not None and venue_lon is not None:
                    venue = Venue(name=venue_name, address=venue_address, lat=venue_lat, lon=venue_lon)
                events.append(
                    UnifiedEvent(
                        provider=provider,
                        provider_id=provider_id,
                        title=title,
                        description=description,
                        category=category,
                        start_at=start_at,
                        end_at=end_at,
                        venue=venue,
                        url=url,
                        popularity=popularity,
                    )
                )
            except ValueError as e:
                logger.warning(f"Skipping malformed stored event {provider}:{provider_id}: {e}")
        return events
