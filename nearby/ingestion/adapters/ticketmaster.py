"""
Ticketmaster Discovery connector.

Docs: https://developer.ticketmaster.com/products-and-docs/apis/discovery-api/v2/
"""

from datetime import datetime
from typing import Any

from nearby.errors import ProviderError
from nearby.schemas.event import UnifiedEvent

from .api_adapter import (
    HTTPConnector,
    build_venue,
    format_utc,
    join_address,
    popularity_from,
    radius_in_miles,
)


class TicketmasterConnector(HTTPConnector):
    """Searches Ticketmaster events around a coordinate."""

    name = "ticketmaster"

    def build_request(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        # The Discovery API rejects fractional seconds
        params = {
            "apikey": self.config.api_key,
            "latlong": f"{lat},{lon}",
            "radius": radius_in_miles(radius_meters),
            "unit": "miles",
            "startDateTime": format_utc(start_time),
            "endDateTime": format_utc(end_time),
            "size": self.config.page_size,
        }
        return "/events.json", params, {}

    def extract_records(self, payload: dict) -> list:
        embedded = payload.get("_embedded")
        if embedded is None:
            # No _embedded block means zero results
            return []
        if not isinstance(embedded, dict):
            raise ProviderError(self.name, "'_embedded' is not an object")
        events = embedded.get("events") or []
        if not isinstance(events, list):
            raise ProviderError(self.name, "'_embedded.events' is not a list")
        return events

    def transform(self, record: dict) -> UnifiedEvent:
        venues = (record.get("_embedded") or {}).get("venues") or [{}]
        venue = venues[0] or {}
        location = venue.get("location") or {}
        address_block = venue.get("address") or {}

        address = None
        if address_block.get("line1"):
            address = join_address(
                address_block.get("line1"),
                (venue.get("city") or {}).get("name"),
                (venue.get("state") or {}).get("stateCode"),
            )

        dates = record.get("dates") or {}
        return UnifiedEvent(
            provider=self.name,
            provider_id=record["id"],
            title=record.get("name") or "Untitled Event",
            description=record.get("info") or record.get("pleaseNote"),
            category=self._extract_categories(record),
            start_at=(dates.get("start") or {}).get("dateTime"),
            end_at=(dates.get("end") or {}).get("dateTime"),
            venue=build_venue(
                location.get("latitude"),
                location.get("longitude"),
                name=venue.get("name"),
                address=address,
            ),
            url=record.get("url"),
            popularity=self._calculate_popularity(record),
        )

    @staticmethod
    def _extract_categories(record: dict) -> list[str]:
        categories = []
        for classification in record.get("classifications") or []:
            for key in ("segment", "genre", "subGenre"):
                name = (classification.get(key) or {}).get("name")
                if name and name.lower() != "undefined":
                    categories.append(name.lower())
        return categories or ["entertainment"]

    @staticmethod
    def _calculate_popularity(record: dict) -> float:
        score = 0.5
        if record.get("images"):
            score += 0.1
        if record.get("priceRanges"):
            score += 0.1
        if record.get("promoter"):
            score += 0.2
        return popularity_from(score)
