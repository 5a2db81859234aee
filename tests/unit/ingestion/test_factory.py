"""
Unit tests for the connector factory.
"""

import httpx
import pytest

from nearby.configs.settings import Settings
from nearby.ingestion.adapters import (
    EventbriteConnector,
    GooglePlacesConnector,
    MeetupConnector,
    TicketmasterConnector,
)
from nearby.ingestion.factory import ConnectorFactory

# =============================================================================
# FIXTURES
# =============================================================================


PROVIDERS_CONFIG = {
    "providers": {
        "eventbrite": {"enabled": True, "endpoint": "https://eb.test/v3"},
        "ticketmaster": {
            "enabled": True,
            "endpoint": "https://tm.test",
            "rate_limit": {"capacity": 5, "refill_rate": 0.06},
        },
        "meetup": {"enabled": False, "endpoint": "https://mu.test"},
        "google_places": {"enabled": True, "endpoint": ""},
    }
}


@pytest.fixture
def settings():
    return Settings(_env_file=None, TICKETMASTER_KEY="tm-key", MEETUP_KEY="  ")


@pytest.fixture
def factory(settings):
    return ConnectorFactory(settings, providers_config=PROVIDERS_CONFIG)


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestConnectorFactory:
    """Tests for ConnectorFactory."""

    def test_list_providers(self, factory):
        """Should report enabled/configured status for every known provider."""
        status = factory.list_providers()

        assert list(status) == ["eventbrite", "ticketmaster", "meetup", "google_places"]
        assert status["ticketmaster"] == {"enabled": True, "configured": True}
        assert status["meetup"] == {"enabled": False, "configured": False}
        assert status["eventbrite"]["configured"] is False

    def test_create_connector(self, factory):
        """Should build the right class with credential and quota."""
        connector = factory.create_connector("ticketmaster")

        assert isinstance(connector, TicketmasterConnector)
        assert connector.is_configured()
        assert connector.config.api_key == "tm-key"
        assert connector.rate_limiter.capacity == 5

    def test_unknown_provider(self, factory):
        """Should reject unknown provider names."""
        with pytest.raises(ValueError, match="Unknown provider"):
            factory.create_connector("songkick")

    def test_missing_endpoint(self, factory):
        """Should reject a provider without an endpoint."""
        with pytest.raises(ValueError, match="no endpoint"):
            factory.create_connector("google_places")

    def test_create_all_enabled(self, factory):
        """Should skip disabled and broken providers, keeping order."""
        connectors = factory.create_all_enabled_connectors()

        assert [type(c) for c in connectors] == [EventbriteConnector, TicketmasterConnector]

    def test_shares_client(self, settings):
        """Should hand the same client to every connector."""
        client = httpx.AsyncClient()
        factory = ConnectorFactory(settings, providers_config=PROVIDERS_CONFIG, client=client)

        connectors = factory.create_all_enabled_connectors()

        assert all(c._client is client for c in connectors)

    def test_default_config_builds_all_four(self, settings):
        """Should load the packaged providers.yaml by default."""
        connectors = ConnectorFactory(settings).create_all_enabled_connectors()

        assert [type(c) for c in connectors] == [
            EventbriteConnector,
            TicketmasterConnector,
            MeetupConnector,
            GooglePlacesConnector,
        ]
        assert connectors[1].rate_limiter.refill_rate == pytest.approx(0.06)
        assert connectors[2].rate_limiter.refill_rate == pytest.approx(0.055)
