"""Geographic helpers: distance math and location resolution."""

from .distance import bounding_box, haversine_meters
from .resolver import GeoResolver

__all__ = ["GeoResolver", "bounding_box", "haversine_meters"]
