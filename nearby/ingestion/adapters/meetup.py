"""
Meetup connector.

Docs: https://www.meetup.com/api/guide/
"""

from datetime import datetime, timedelta, timezone
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


def _from_epoch_ms(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)


class MeetupConnector(HTTPConnector):
    """Searches Meetup events around a coordinate."""

    name = "meetup"

    def build_request(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        params = {
            "lat": lat,
            "lon": lon,
            "radius": radius_in_miles(radius_meters),
            "start_date_range": format_utc(start_time),
            "end_date_range": format_utc(end_time),
            "page": self.config.page_size,
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        return "/find/events", params, headers

    def extract_records(self, payload: dict) -> list:
        events = payload.get("events")
        if events is None:
            return []
        if not isinstance(events, list):
            raise ProviderError(self.name, "'events' is not a list")
        return events

    def transform(self, record: dict) -> UnifiedEvent:
        venue = record.get("venue") or {}
        group = record.get("group") or {}

        start_at = _from_epoch_ms(record.get("time"))
        end_at = None
        if start_at is not None and record.get("duration"):
            end_at = start_at + timedelta(milliseconds=float(record["duration"]))

        # Venue coordinates fall back to the group's home location
        lat = venue.get("lat") if venue.get("lat") else group.get("lat")
        lon = venue.get("lon") if venue.get("lon") else group.get("lon")

        address = None
        if venue.get("address_1"):
            address = join_address(venue.get("address_1"), venue.get("city"), venue.get("state"))

        return UnifiedEvent(
            provider=self.name,
            provider_id=record["id"],
            title=record.get("name") or "Untitled Meetup",
            description=record.get("description"),
            category=self._extract_categories(record),
            start_at=start_at,
            end_at=end_at,
            venue=build_venue(lat, lon, name=venue.get("name") or group.get("name"), address=address),
            url=record.get("link"),
            popularity=self._calculate_popularity(record),
        )

    @staticmethod
    def _extract_categories(record: dict) -> list[str]:
        group = record.get("group") or {}
        categories = []
        shortname = (group.get("category") or {}).get("shortname")
        if shortname:
            categories.append(shortname.lower())
        for topic in (group.get("topics") or [])[:3]:
            if topic.get("name"):
                categories.append(topic["name"].lower())
        return categories or ["social"]

    @staticmethod
    def _calculate_popularity(record: dict) -> float:
        score = 0.5
        rsvps = record.get("yes_rsvp_count") or 0
        if rsvps > 50:
            score += 0.2
        elif rsvps > 20:
            score += 0.1
        if (record.get("waitlist_count") or 0) > 0:
            score += 0.1
        if record.get("featured"):
            score += 0.1
        return popularity_from(score)
