"""Geographic models produced by the GeoResolver."""

from typing import Optional

from pydantic import Field

from nearby.schemas.base import CamelModel


class Coordinates(CamelModel):
    """A WGS84 point."""

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class BoundingBox(CamelModel):
    """Axis-aligned lat/lon box around a search center."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        """Return True when the point lies inside the box (edges included)."""
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )


class GeoResolution(CamelModel):
    """
    Result of resolving a search location.

    The bounding box and center are always present; the address fields are
    best-effort enrichment from the reverse geocoder.
    """

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    bounding_box: BoundingBox
    center: Coordinates
