"""
Rank Engine.

Scores every candidate against one requester and orders them by score.
"""

import logging
from typing import Iterable, Optional

from nearby.errors import ScoringError
from nearby.geo.distance import haversine_meters
from nearby.schemas.event import ScoredEvent, UnifiedEvent

from .scoring import (
    DEFAULT_DECAY_METERS,
    ScoringWeights,
    composite_score,
    estimate_duration_minutes,
    score_breakdown,
)

logger = logging.getLogger(__name__)


class RankEngine:
    """
    Deterministic multi-factor ranking.

    Sorting is stable: candidates with equal scores keep their input order.
    A candidate that cannot be scored is logged and left out.
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        decay_meters: float = DEFAULT_DECAY_METERS,
    ):
        if decay_meters <= 0:
            raise ValueError(f"decay_meters must be positive, got {decay_meters}")
        self.weights = weights or ScoringWeights()
        self.decay_meters = decay_meters

    def score_event(
        self,
        event: UnifiedEvent,
        lat: float,
        lon: float,
        minutes_available: int,
        interests: Optional[Iterable[str]] = None,
    ) -> ScoredEvent:
        """
        Score one candidate.

        Venue-less candidates are placed at the requester's location.

        Raises:
            ScoringError: If the candidate cannot be scored
        """
        try:
            if event.venue is not None:
                distance = haversine_meters(lat, lon, event.venue.lat, event.venue.lon)
            else:
                distance = 0.0
            duration = estimate_duration_minutes(event.start_at, event.end_at)
            breakdown = score_breakdown(
                event,
                distance_meters=distance,
                duration_minutes=duration,
                budget_minutes=minutes_available,
                interests=interests,
                decay_meters=self.decay_meters,
            )
            return ScoredEvent.from_event(
                event,
                score=composite_score(breakdown, self.weights),
                score_breakdown=breakdown,
                distance_meters=distance,
                duration_minutes=duration,
            )
        except (ValueError, TypeError, ArithmeticError) as e:
            raise ScoringError(event.identity, str(e)) from e

    def rank(
        self,
        events: Iterable[UnifiedEvent],
        lat: float,
        lon: float,
        minutes_available: int,
        interests: Optional[Iterable[str]] = None,
    ) -> list[ScoredEvent]:
        """Score all candidates and sort them by score, highest first."""
        interests = list(interests) if interests else None
        scored: list[ScoredEvent] = []
        for event in events:
            try:
                scored.append(self.score_event(event, lat, lon, minutes_available, interests))
            except ScoringError as e:
                logger.warning(f"Dropping candidate {e.identity}: {e}")

        scored.sort(key=lambda s: s.score, reverse=True)
        return scored
