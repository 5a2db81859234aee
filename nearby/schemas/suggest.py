"""Orchestrator request/response contract."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from nearby.schemas.base import CamelModel, as_utc
from nearby.schemas.event import ScoredEvent
from nearby.schemas.geo import GeoResolution

DEFAULT_RADIUS_METERS = 5000
DEFAULT_LIMIT = 20


class SuggestRequest(CamelModel):
    """
    A single suggestion request.

    ``now`` overrides the current time (useful for reproducible runs); it
    bounds the start of the provider search window.
    """

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    minutes_available: int = Field(ge=15, le=360)
    interests: Optional[list[str]] = None
    radius_meters: int = Field(default=DEFAULT_RADIUS_METERS, gt=0)
    now: Optional[datetime] = None
    limit: int = Field(default=DEFAULT_LIMIT, gt=0)

    @field_validator("now")
    @classmethod
    def normalize_now(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class SuggestMetadata(CamelModel):
    """What actually happened while serving a request."""

    total_found: int = Field(ge=0)
    providers: list[str] = Field(default_factory=list)
    cached: bool = False
    processing_time_ms: float = Field(ge=0)


class SuggestResponse(CamelModel):
    """Top-N ranked suggestions plus metadata."""

    suggestions: list[ScoredEvent] = Field(default_factory=list)
    metadata: SuggestMetadata
    location: Optional[GeoResolution] = None
