# nearby/schemas/event.py
"""
Unified Event Schema.

Every provider connector normalizes its source-specific payload into
UnifiedEvent. Ranking wraps a UnifiedEvent into a ScoredEvent carrying the
composite score, the per-factor breakdown and the derived distance/duration.
"""

import math
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from nearby.schemas.base import CamelModel, as_utc

DEFAULT_POPULARITY = 0.5


# ============================================================================
# VENUE
# ============================================================================


class Venue(CamelModel):
    """Where an event takes place (or where a place is)."""

    name: Optional[str] = None
    address: Optional[str] = None
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


# ============================================================================
# UNIFIED EVENT
# ============================================================================


class UnifiedEvent(CamelModel):
    """
    Provider-independent event or place.

    ``(provider, provider_id)`` is the identity key; it is unique within any
    result set returned by the aggregator.
    """

    provider: str = Field(min_length=1)
    provider_id: str = Field(min_length=1)
    title: str
    description: Optional[str] = None
    category: list[str] = Field(default_factory=list)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    venue: Optional[Venue] = None
    url: Optional[str] = None
    popularity: float = DEFAULT_POPULARITY

    @field_validator("provider_id", mode="before")
    @classmethod
    def coerce_provider_id(cls, v: Any) -> Any:
        # Some sources use numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        tags: list[str] = []
        for item in v:
            tag = str(item).strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @field_validator("popularity", mode="before")
    @classmethod
    def clamp_popularity(cls, v: Any) -> float:
        if v is None:
            return DEFAULT_POPULARITY
        value = float(v)
        if math.isnan(value):
            return DEFAULT_POPULARITY
        return min(1.0, max(0.0, value))

    @model_validator(mode="after")
    def validate_time_range(self) -> "UnifiedEvent":
        """Ensure the event does not end before it starts."""
        if self.start_at and self.end_at and self.end_at < self.start_at:
            raise ValueError(
                f"end_at ({self.end_at.isoformat()}) is before "
                f"start_at ({self.start_at.isoformat()})"
            )
        return self

    @property
    def identity(self) -> tuple[str, str]:
        """Identity key ``(provider, provider_id)``."""
        return (self.provider, self.provider_id)

    @property
    def is_timed(self) -> bool:
        """Events have a start time; places to visit do not."""
        return self.start_at is not None


# ============================================================================
# SCORING
# ============================================================================


class ScoreBreakdown(CamelModel):
    """Per-factor sub-scores, each in [0, 1]."""

    relevance: float = Field(ge=0, le=1)
    proximity: float = Field(ge=0, le=1)
    time_fit: float = Field(ge=0, le=1)
    popularity: float = Field(ge=0, le=1)


class ScoredEvent(UnifiedEvent):
    """A UnifiedEvent ranked against one requester."""

    score: float = Field(ge=0, le=1)
    score_breakdown: ScoreBreakdown
    distance_meters: int = Field(ge=0)
    duration_minutes: int = Field(ge=0)

    @classmethod
    def from_event(
        cls,
        event: UnifiedEvent,
        *,
        score: float,
        score_breakdown: ScoreBreakdown,
        distance_meters: float,
        duration_minutes: float,
    ) -> "ScoredEvent":
        """Build a ScoredEvent from an event and its computed ranking fields."""
        return cls(
            **event.model_dump(),
            score=score,
            score_breakdown=score_breakdown,
            distance_meters=round(distance_meters),
            duration_minutes=round(duration_minutes),
        )
