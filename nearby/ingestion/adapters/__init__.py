"""Provider connectors: one per external event/place source."""

from .api_adapter import HTTPConnector
from .base_adapter import ConnectorConfig, ProviderConnector
from .eventbrite import EventbriteConnector
from .google_places import GooglePlacesConnector
from .meetup import MeetupConnector
from .ticketmaster import TicketmasterConnector

CONNECTOR_CLASSES = {
    "eventbrite": EventbriteConnector,
    "ticketmaster": TicketmasterConnector,
    "meetup": MeetupConnector,
    "google_places": GooglePlacesConnector,
}

__all__ = [
    "CONNECTOR_CLASSES",
    "ConnectorConfig",
    "EventbriteConnector",
    "GooglePlacesConnector",
    "HTTPConnector",
    "MeetupConnector",
    "ProviderConnector",
    "TicketmasterConnector",
]
