"""
Eventbrite connector.

Docs: https://www.eventbrite.com/platform/api
"""

from datetime import datetime
from typing import Any

from nearby.errors import ProviderError
from nearby.schemas.event import UnifiedEvent

from .api_adapter import HTTPConnector, build_venue, format_utc, popularity_from, radius_in_km


class EventbriteConnector(HTTPConnector):
    """Searches Eventbrite events around a coordinate."""

    name = "eventbrite"

    def build_request(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        params = {
            "location.latitude": lat,
            "location.longitude": lon,
            "location.within": f"{radius_in_km(radius_meters)}km",
            "start_date.range_start": format_utc(start_time),
            "start_date.range_end": format_utc(end_time),
            "expand": "venue",
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        return "/events/search/", params, headers

    def extract_records(self, payload: dict) -> list:
        events = payload.get("events")
        if events is None:
            return []
        if not isinstance(events, list):
            raise ProviderError(self.name, "'events' is not a list")
        return events

    def transform(self, record: dict) -> UnifiedEvent:
        venue = record.get("venue") or {}
        address = (venue.get("address") or {}).get("localized_address_display")

        return UnifiedEvent(
            provider=self.name,
            provider_id=record["id"],
            title=(record.get("name") or {}).get("text") or "Untitled Event",
            description=(record.get("description") or {}).get("text"),
            category=self._extract_categories(record),
            start_at=(record.get("start") or {}).get("utc"),
            end_at=(record.get("end") or {}).get("utc"),
            venue=build_venue(
                venue.get("latitude"),
                venue.get("longitude"),
                name=venue.get("name"),
                address=address,
            ),
            url=record.get("url"),
            popularity=self._calculate_popularity(record),
        )

    @staticmethod
    def _extract_categories(record: dict) -> list[str]:
        categories = []
        for key in ("category", "subcategory", "format"):
            name = (record.get(key) or {}).get("name")
            if name:
                categories.append(name.lower())
        return categories or ["general"]

    @staticmethod
    def _calculate_popularity(record: dict) -> float:
        score = 0.5
        if record.get("is_online_event"):
            score += 0.1
        capacity = record.get("capacity")
        if isinstance(capacity, (int, float)) and capacity > 100:
            score += 0.2
        if record.get("is_series"):
            score += 0.1
        return popularity_from(score)
