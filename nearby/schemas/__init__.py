"""Pydantic data models shared across the pipeline."""

from .event import DEFAULT_POPULARITY, ScoreBreakdown, ScoredEvent, UnifiedEvent, Venue
from .geo import BoundingBox, Coordinates, GeoResolution
from .suggest import SuggestMetadata, SuggestRequest, SuggestResponse

__all__ = [
    "DEFAULT_POPULARITY",
    "Venue",
    "UnifiedEvent",
    "ScoreBreakdown",
    "ScoredEvent",
    "BoundingBox",
    "Coordinates",
    "GeoResolution",
    "SuggestRequest",
    "SuggestMetadata",
    "SuggestResponse",
]
