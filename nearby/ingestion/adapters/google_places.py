"""
Google Places connector for points of interest (parks, museums, ...).

Docs: https://developers.google.com/maps/documentation/places/web-service/search-nearby
"""

from datetime import datetime
from typing import Any

from nearby.errors import ProviderError
from nearby.schemas.event import UnifiedEvent

from .api_adapter import HTTPConnector, build_venue, popularity_from

DEFAULT_POI_TYPES = [
    "museum",
    "art_gallery",
    "park",
    "amusement_park",
    "aquarium",
    "zoo",
    "tourist_attraction",
    "stadium",
    "library",
]
OK_STATUSES = {"OK", "ZERO_RESULTS"}


class GooglePlacesConnector(HTTPConnector):
    """
    Searches nearby places.

    Places are untimed: the time window is ignored and results carry no
    start/end.
    """

    name = "google_places"

    @property
    def poi_types(self) -> list[str]:
        return list(self.config.custom_config.get("poi_types") or DEFAULT_POI_TYPES)

    def build_request(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        params = {
            "key": self.config.api_key,
            "location": f"{lat},{lon}",
            "radius": radius_meters,
            "type": "|".join(self.poi_types),
        }
        return "/nearbysearch/json", params, {}

    def extract_records(self, payload: dict) -> list:
        status = payload.get("status")
        if status is not None and status not in OK_STATUSES:
            detail = payload.get("error_message") or status
            raise ProviderError(self.name, f"API status {status}: {detail}")
        results = payload.get("results")
        if results is None:
            return []
        if not isinstance(results, list):
            raise ProviderError(self.name, "'results' is not a list")
        return results

    def transform(self, record: dict) -> UnifiedEvent:
        place_id = record["place_id"]
        location = (record.get("geometry") or {}).get("location") or {}

        return UnifiedEvent(
            provider=self.name,
            provider_id=place_id,
            title=record.get("name") or "Unnamed Place",
            description=(record.get("editorial_summary") or {}).get("overview"),
            category=[t.replace("_", " ") for t in record.get("types") or []] or ["point-of-interest"],
            venue=build_venue(
                location.get("lat"),
                location.get("lng"),
                name=record.get("name"),
                address=record.get("vicinity"),
            ),
            url=record.get("url") or f"https://www.google.com/maps/place/?q=place_id:{place_id}",
            popularity=self._calculate_popularity(record),
        )

    @staticmethod
    def _calculate_popularity(record: dict) -> float:
        score = 0.5
        rating = record.get("rating")
        if isinstance(rating, (int, float)) and rating > 0:
            score += (rating / 5) * 0.3
        reviews = record.get("user_ratings_total") or 0
        if reviews > 1000:
            score += 0.2
        elif reviews > 100:
            score += 0.1
        if (record.get("opening_hours") or {}).get("open_now"):
            score += 0.1
        return popularity_from(score)
