"""Great-circle distance and search-area bounding boxes."""

import math

from nearby.schemas.geo import BoundingBox

EARTH_RADIUS_METERS = 6_371_000
METERS_PER_DEGREE_LAT = 111_000
DEFAULT_BUFFER_FACTOR = 1.5


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Guard against a > 1 from float error
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_METERS * c


def bounding_box(
    lat: float,
    lon: float,
    radius_meters: float,
    buffer_factor: float = DEFAULT_BUFFER_FACTOR,
) -> BoundingBox:
    """
    Box around ``(lat, lon)`` covering ``radius_meters * buffer_factor``.

    The longitude span widens with latitude; near the poles it is capped at
    the full 180 degrees. Edges are clamped to valid coordinates.
    """
    lat_delta = radius_meters / METERS_PER_DEGREE_LAT * buffer_factor
    lon_delta = min(180.0, lat_delta / max(abs(math.cos(math.radians(lat))), 0.01))

    return BoundingBox(
        min_lat=max(-90.0, lat - lat_delta),
        max_lat=min(90.0, lat + lat_delta),
        min_lon=max(-180.0, lon - lon_delta),
        max_lon=min(180.0, lon + lon_delta),
    )
