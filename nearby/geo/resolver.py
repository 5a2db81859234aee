"""
Location resolution.

Reverse-geocodes the search center through a Nominatim-compatible endpoint
and attaches an analytic bounding box. Geocoding is enrichment only: when
it fails the resolver still answers with the box and center.
"""

import logging

import httpx

from nearby.errors import GeoResolutionError
from nearby.schemas.geo import Coordinates, GeoResolution

from .distance import DEFAULT_BUFFER_FACTOR, bounding_box

logger = logging.getLogger(__name__)

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org"
DEFAULT_USER_AGENT = "NearbySuggest/1.0"


def _text(value) -> str | None:
    return str(value) if value else None


class GeoResolver:
    """Reverse geocoder with an analytic fallback."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_GEOCODER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 5.0,
        buffer_factor: float = DEFAULT_BUFFER_FACTOR,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.buffer_factor = buffer_factor
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    def fallback(self, lat: float, lon: float, radius_meters: float) -> GeoResolution:
        """Bounding box and center only."""
        return GeoResolution(
            bounding_box=bounding_box(lat, lon, radius_meters, self.buffer_factor),
            center=Coordinates(lat=lat, lon=lon),
        )

    async def resolve(self, lat: float, lon: float, radius_meters: float) -> GeoResolution:
        """
        Resolve a search location.

        Never raises for geocoder failures; the address fields are simply
        left empty.
        """
        resolution = self.fallback(lat, lon, radius_meters)
        try:
            data = await self._reverse(lat, lon)
        except GeoResolutionError as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lon}): {e}")
            return resolution

        address = data.get("address") or {}
        if not isinstance(address, dict):
            address = {}
        return GeoResolution(
            address=_text(data.get("display_name")),
            city=_text(address.get("city") or address.get("town") or address.get("village")),
            state=_text(address.get("state")),
            country=_text(address.get("country")),
            bounding_box=resolution.bounding_box,
            center=resolution.center,
        )

    async def _reverse(self, lat: float, lon: float) -> dict:
        client = self._get_client()
        try:
            response = await client.get(
                f"{self.base_url}/reverse",
                params={"lat": lat, "lon": lon, "format": "json"},
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise GeoResolutionError(f"Geocoder request failed: {e!r}") from e
        except ValueError as e:
            raise GeoResolutionError("Geocoder returned invalid JSON") from e

        if not isinstance(data, dict):
            raise GeoResolutionError(f"Unexpected geocoder payload: {type(data).__name__}")
        if "error" in data:
            raise GeoResolutionError(str(data["error"]))
        return data

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
