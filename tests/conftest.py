"""
Shared pytest fixtures for the suggestion pipeline test suite.

Provides factories for UnifiedEvent objects, fake provider connectors and a
controllable clock.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest

from nearby.ingestion.adapters.base_adapter import ProviderConnector
from nearby.schemas.event import UnifiedEvent, Venue

SF_LAT = 37.7749
SF_LON = -122.4194


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.advance(seconds)


class FakeConnector(ProviderConnector):
    """In-memory connector with scripted results."""

    def __init__(
        self,
        name: str,
        events: Optional[list] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        configured: bool = True,
    ):
        self.name = name
        super().__init__()
        self.events = events or []
        self.error = error
        self.delay = delay
        self.configured = configured
        self.calls = []
        self.closed = False

    def is_configured(self) -> bool:
        return self.configured

    async def search(self, lat, lon, radius_meters, start_time=None, end_time=None):
        self.calls.append((lat, lon, radius_meters, start_time, end_time))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def create_event():
    """
    Return a function that creates UnifiedEvent objects with sensible defaults.

    Example:
        event = create_event(title="Jazz Night", category=["music"], lat=37.78)
    """

    def _create_event(
        provider: str = "ticketmaster",
        provider_id: Optional[str] = None,
        title: str = "Test Event",
        lat: Optional[float] = SF_LAT,
        lon: Optional[float] = SF_LON,
        **kwargs,
    ) -> UnifiedEvent:
        venue = None
        if lat is not None and lon is not None:
            venue = Venue(name="Test Venue", lat=lat, lon=lon)

        defaults = {
            "provider": provider,
            "provider_id": provider_id or str(uuid.uuid4()),
            "title": title,
            "category": ["music"],
            "start_at": datetime(2024, 6, 15, 20, 0, tzinfo=timezone.utc),
            "venue": venue,
            "url": "https://example.com/event",
            "popularity": 0.5,
        }
        defaults.update(kwargs)
        return UnifiedEvent(**defaults)

    return _create_event


@pytest.fixture
def sample_event(create_event):
    """Return a single default test event."""
    return create_event()


@pytest.fixture
def make_connector():
    """Return a factory for FakeConnector instances."""

    def _make_connector(name: str = "fake", **kwargs) -> FakeConnector:
        return FakeConnector(name, **kwargs)

    return _make_connector


@pytest.fixture
def fake_clock():
    """A FakeClock starting at t=1000s."""
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() side effects between tests."""
    logger = logging.getLogger("nearby")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate
