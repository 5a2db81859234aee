"""
Unit tests for the PipelineOrchestrator.

Includes the San Francisco end-to-end scenario over fake connectors.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from nearby.errors import GeoResolutionError, ProviderError, ValidationError
from nearby.geo.distance import bounding_box
from nearby.geo.resolver import GeoResolver
from nearby.ingestion.aggregator import EventAggregator
from nearby.ingestion.cache import InMemoryCacheStore
from nearby.ingestion.store import InMemoryEventStore
from nearby.monitoring.metrics import SUGGEST_DURATION, SUGGEST_REQUESTS, SUGGEST_RESULTS
from nearby.pipeline.orchestrator import PipelineOrchestrator
from nearby.schemas.geo import Coordinates, GeoResolution
from nearby.schemas.suggest import SuggestRequest, SuggestResponse

SF_LAT, SF_LON = 37.7749, -122.4194
NOW = datetime(2024, 6, 15, 17, 0, tzinfo=timezone.utc)

SF_REQUEST = {
    "lat": SF_LAT,
    "lon": SF_LON,
    "minutesAvailable": 120,
    "interests": ["music", "technology"],
    "radiusMeters": 5000,
    "now": NOW.isoformat(),
}


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def sf_connectors(make_connector, create_event):
    """Four fake sources around San Francisco, one of them broken."""
    eventbrite = make_connector(
        "eventbrite",
        events=[
            create_event(
                provider="eventbrite",
                provider_id="eb-1",
                title="Tech Networking Mixer",
                category=["technology", "networking"],
                lat=SF_LAT + 0.01,
                lon=SF_LON - 0.01,
                start_at=NOW + timedelta(hours=2),
                end_at=NOW + timedelta(hours=5),
                popularity=0.75,
            )
        ],
    )
    ticketmaster = make_connector(
        "ticketmaster",
        events=[
            create_event(
                provider="ticketmaster",
                provider_id="tm-1",
                title="Live Concert Series",
                category=["music", "concert"],
                lat=SF_LAT - 0.01,
                lon=SF_LON + 0.01,
                start_at=NOW + timedelta(hours=3),
                end_at=NOW + timedelta(hours=5),
                popularity=0.9,
            ),
            create_event(
                provider="ticketmaster",
                provider_id="tm-far",
                title="Concert in Sacramento",
                category=["music"],
                lat=38.5816,
                lon=-121.4944,
            ),
        ],
    )
    meetup = make_connector("meetup", error=ProviderError("meetup", "HTTP 429"))
    google_places = make_connector(
        "google_places",
        events=[
            create_event(
                provider="google_places",
                provider_id="gp-1",
                title="Local Art Gallery",
                category=["art", "museum"],
                lat=SF_LAT - 0.015,
                lon=SF_LON - 0.015,
                start_at=None,
                popularity=0.7,
            )
        ],
    )
    return [eventbrite, ticketmaster, meetup, google_places]


@pytest.fixture
def offline_resolver():
    """A GeoResolver whose geocoder is unreachable."""

    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    return GeoResolver(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.fixture
def make_orchestrator(offline_resolver):
    """Return a factory for orchestrators over fake connectors."""

    def _make(connectors, resolver=None, **kwargs):
        aggregator = EventAggregator(connectors, InMemoryCacheStore(), jitter_range=(0.0, 0.0))
        return PipelineOrchestrator(resolver or offline_resolver, aggregator, **kwargs)

    return _make


def _suggest(orchestrator, request):
    return asyncio.run(orchestrator.suggest(request))


# =============================================================================
# END-TO-END
# =============================================================================


class TestSanFranciscoScenario:
    """The reference scenario: SF, 120 minutes, music and technology."""

    def test_end_to_end(self, make_orchestrator, sf_connectors):
        """Should return a bounded, sorted, in-range list with consistent metadata."""
        orchestrator = make_orchestrator(sf_connectors)

        response = _suggest(orchestrator, SF_REQUEST)

        assert isinstance(response, SuggestResponse)
        suggestions = response.suggestions
        assert 0 < len(suggestions) <= 20
        scores = [s.score for s in suggestions]
        assert scores == sorted(scores, reverse=True)
        assert all(s.distance_meters <= 5000 * 3 for s in suggestions)
        assert response.metadata.total_found >= len(suggestions)
        assert response.metadata.total_found == 4
        assert response.metadata.providers == ["eventbrite", "ticketmaster", "google_places"]
        assert response.metadata.cached is False
        assert response.metadata.processing_time_ms >= 0

    def test_outlier_dropped(self, make_orchestrator, sf_connectors):
        """Should drop the Sacramento event far beyond the search radius."""
        response = _suggest(make_orchestrator(sf_connectors), SF_REQUEST)

        ids = [s.provider_id for s in response.suggestions]
        assert "tm-far" not in ids
        assert set(ids) == {"eb-1", "tm-1", "gp-1"}

    def test_music_concert_ranks_first(self, make_orchestrator, sf_connectors):
        """Should favor the concert that matches interests and fits the budget."""
        response = _suggest(make_orchestrator(sf_connectors), SF_REQUEST)

        top = response.suggestions[0]
        assert top.provider_id == "tm-1"
        assert top.score_breakdown.time_fit == 1.0
        assert top.score_breakdown.relevance == pytest.approx(1 / 3)

    def test_second_request_is_cached(self, make_orchestrator, sf_connectors):
        """Should report cached=True when the aggregation came from cache."""
        orchestrator = make_orchestrator(sf_connectors)

        _suggest(orchestrator, SF_REQUEST)
        response = _suggest(orchestrator, SF_REQUEST)

        assert response.metadata.cached is True
        assert response.metadata.total_found == 4

    def test_limit(self, make_orchestrator, sf_connectors):
        """Should truncate to limit while total_found counts everything."""
        response = _suggest(make_orchestrator(sf_connectors), {**SF_REQUEST, "limit": 1})

        assert len(response.suggestions) == 1
        assert response.metadata.total_found == 4

    def test_location_fallback(self, make_orchestrator, sf_connectors):
        """Should attach the analytic location when the geocoder is offline."""
        response = _suggest(make_orchestrator(sf_connectors), SF_REQUEST)

        assert response.location.address is None
        assert response.location.center == Coordinates(lat=SF_LAT, lon=SF_LON)
        assert response.location.bounding_box == bounding_box(SF_LAT, SF_LON, 5000)

    def test_wire_output(self, make_orchestrator, sf_connectors):
        """Should serialize to the camelCase contract."""
        wire = _suggest(make_orchestrator(sf_connectors), SF_REQUEST).to_wire()

        assert set(wire) == {"suggestions", "metadata", "location"}
        assert set(wire["metadata"]) == {"totalFound", "providers", "cached", "processingTimeMs"}
        item = wire["suggestions"][0]
        assert {"score", "scoreBreakdown", "distanceMeters", "durationMinutes", "providerId"} <= set(item)


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidation:
    """Tests for input validation."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lat": 91},
            {"minutesAvailable": 10},
            {"radiusMeters": -5},
            {"limit": 0},
        ],
    )
    def test_invalid_input_raises(self, make_orchestrator, overrides):
        """Should raise ValidationError with field details."""
        orchestrator = make_orchestrator([])

        with pytest.raises(ValidationError) as exc_info:
            _suggest(orchestrator, {**SF_REQUEST, **overrides})

        assert exc_info.value.errors
        assert isinstance(exc_info.value, ValueError)

    def test_missing_field(self, make_orchestrator):
        """Should reject a request without minutesAvailable."""
        with pytest.raises(ValidationError):
            _suggest(make_orchestrator([]), {"lat": 0, "lon": 0})

    def test_non_mapping(self, make_orchestrator):
        """Should reject non-mapping input."""
        with pytest.raises(ValidationError, match="mapping"):
            _suggest(make_orchestrator([]), ["lat", 0])

    def test_no_pipeline_work_on_invalid_input(self, make_orchestrator, make_connector):
        """Should not call any connector for invalid input."""
        connector = make_connector("eventbrite")

        with pytest.raises(ValidationError):
            _suggest(make_orchestrator([connector]), {**SF_REQUEST, "lat": 200})

        assert connector.calls == []

    def test_accepts_model_instance(self, make_orchestrator):
        """Should accept a SuggestRequest directly."""
        request = SuggestRequest(lat=SF_LAT, lon=SF_LON, minutes_available=60)

        response = _suggest(make_orchestrator([]), request)

        assert response.suggestions == []
        assert response.metadata.total_found == 0


# =============================================================================
# DEGRADATION
# =============================================================================


class TestDegradation:
    """Tests for partial failures and deadlines."""

    def test_all_providers_failing(self, make_orchestrator, make_connector):
        """Should answer with an empty list, not an error."""
        broken = [make_connector(n, error=ProviderError(n, "down")) for n in ("eventbrite", "meetup")]

        response = _suggest(make_orchestrator(broken), SF_REQUEST)

        assert response.suggestions == []
        assert response.metadata.providers == []

    def test_resolver_error_falls_back(self, make_orchestrator, sf_connectors):
        """Should fall back to the analytic location when resolve raises."""
        resolver = AsyncMock()
        resolver.resolve.side_effect = GeoResolutionError("boom")

        response = _suggest(make_orchestrator(sf_connectors, resolver=resolver), SF_REQUEST)

        assert response.location.city is None
        assert len(response.suggestions) == 3

    def test_resolver_timeout_falls_back(self, make_orchestrator, make_connector, create_event):
        """Should not wait on a hung geocoder beyond the deadline."""

        async def hang(*args, **kwargs):
            await asyncio.sleep(10)

        resolver = AsyncMock()
        resolver.resolve.side_effect = hang
        connector = make_connector("eventbrite", events=[create_event(provider="eventbrite")])
        orchestrator = make_orchestrator([connector], resolver=resolver, deadline_seconds=0.3)

        response = _suggest(orchestrator, SF_REQUEST)

        assert response.location.bounding_box is not None
        assert response.metadata.processing_time_ms < 5_000

    def test_uses_resolved_location(self, make_orchestrator):
        """Should return the resolver's answer when it succeeds."""
        resolved = GeoResolution(
            city="San Francisco",
            bounding_box=bounding_box(SF_LAT, SF_LON, 5000),
            center=Coordinates(lat=SF_LAT, lon=SF_LON),
        )
        resolver = AsyncMock()
        resolver.resolve.return_value = resolved

        response = _suggest(make_orchestrator([], resolver=resolver), SF_REQUEST)

        assert response.location.city == "San Francisco"
        resolver.resolve.assert_awaited_once_with(SF_LAT, SF_LON, 5000)

    def test_now_bounds_search_window(self, make_orchestrator, make_connector):
        """Should pass request.now as the connector start time."""
        connector = make_connector("eventbrite")

        _suggest(make_orchestrator([connector]), SF_REQUEST)

        assert connector.calls[0][3] == NOW

    def test_deadline_covers_slow_store(self, offline_resolver, make_connector):
        """Should answer within the deadline even when the store hangs."""

        class HangingStore(InMemoryEventStore):
            async def find_fresh(self, bounding_box, updated_within_hours, limit=100):
                await asyncio.sleep(3)
                return []

        aggregator = EventAggregator(
            [make_connector("eventbrite")],
            InMemoryCacheStore(),
            store=HangingStore(),
            jitter_range=(0.0, 0.0),
        )
        orchestrator = PipelineOrchestrator(offline_resolver, aggregator, deadline_seconds=0.5)

        started = time.perf_counter()
        response = _suggest(orchestrator, SF_REQUEST)

        assert time.perf_counter() - started < 1.5
        assert response.suggestions == []


# =============================================================================
# METRICS
# =============================================================================


class TestMetrics:
    """Tests for the per-request metrics."""

    def test_records_requests_duration_and_results(self, make_orchestrator, sf_connectors):
        """Should count requests and observe duration and result size."""
        orchestrator = make_orchestrator(sf_connectors)

        _suggest(orchestrator, SF_REQUEST)
        with pytest.raises(ValidationError):
            _suggest(orchestrator, {**SF_REQUEST, "lat": 200})

        m = orchestrator.metrics
        assert m.counter(SUGGEST_REQUESTS, labels={"status": "ok"}) == 1
        assert m.counter(SUGGEST_REQUESTS, labels={"status": "invalid"}) == 1
        summaries = m.snapshot()["summaries"]
        assert summaries[SUGGEST_RESULTS]["sum"] == 3
        assert summaries[SUGGEST_DURATION]["count"] == 1
