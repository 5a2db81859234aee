"""
Scoring functions for candidate ranking.

Each sub-score maps to [0, 1]; the composite is a fixed convex combination:

    score = 0.4 * relevance + 0.3 * proximity + 0.2 * time_fit + 0.1 * popularity

- relevance:  Jaccard(categories, interests); 0.5 when no interests are given
- proximity:  linear decay, 1 at the requester and 0 from ``decay_meters`` on
- time_fit:   1 while the event fits the time budget, then a smooth decay
- popularity: the connector's popularity, 0.5 when unknown
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from nearby.schemas.event import DEFAULT_POPULARITY, ScoreBreakdown, UnifiedEvent

NEUTRAL_RELEVANCE = 0.5
DEFAULT_DECAY_METERS = 10_000
TIMED_DEFAULT_MINUTES = 120
UNTIMED_DEFAULT_MINUTES = 60
# Steepness of the over-budget decay
TIME_FIT_STEEPNESS = 4.0


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the four sub-scores; they must sum to 1."""

    relevance: float = 0.4
    proximity: float = 0.3
    time_fit: float = 0.2
    popularity: float = 0.1

    def __post_init__(self):
        values = (self.relevance, self.proximity, self.time_fit, self.popularity)
        if any(v < 0 for v in values):
            raise ValueError(f"Scoring weights must be non-negative, got {values}")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
            raise ValueError(f"Scoring weights must sum to 1, got {sum(values)}")


def normalize_tags(values: Optional[Iterable[str]]) -> set[str]:
    """Lower-case, strip and drop blank tags."""
    if not values:
        return set()
    return {str(v).strip().lower() for v in values if v and str(v).strip()}


def relevance_score(categories: Iterable[str], interests: Optional[Iterable[str]]) -> float:
    """Jaccard similarity between categories and interests."""
    wanted = normalize_tags(interests)
    if not wanted:
        return NEUTRAL_RELEVANCE
    tags = normalize_tags(categories)
    return len(tags & wanted) / len(tags | wanted)


def proximity_score(distance_meters: float, decay_meters: float = DEFAULT_DECAY_METERS) -> float:
    """Linear decay from 1 at zero distance to 0 at ``decay_meters``."""
    return max(0.0, 1.0 - distance_meters / decay_meters)


def estimate_duration_minutes(
    start_at: Optional[datetime],
    end_at: Optional[datetime],
) -> float:
    """
    Expected time spent on an event, in minutes.

    Timed events without an end default to two hours; untimed entries
    (places) to one hour.
    """
    if start_at is None:
        return UNTIMED_DEFAULT_MINUTES
    if end_at is None:
        return TIMED_DEFAULT_MINUTES
    return max(0.0, (end_at - start_at).total_seconds() / 60)


def time_fit_score(duration_minutes: float, budget_minutes: float) -> float:
    """
    How well an event fits the time budget.

    1.0 up to the budget. Past it, ``2 / (1 + exp(k * excess / budget))``:
    continuous at the boundary and never reaching 0. It is strictly
    decreasing until the exponent passes 700 (an overrun of 175 budgets with
    k=4); beyond that it stays at the smallest positive float.
    """
    if duration_minutes <= budget_minutes:
        return 1.0
    ratio = (duration_minutes - budget_minutes) / budget_minutes
    exponent = TIME_FIT_STEEPNESS * ratio
    # exp overflows past ~709
    if exponent > 700:
        return math.ulp(0.0)
    return 2.0 / (1.0 + math.exp(exponent))


def popularity_score(popularity: Optional[float]) -> float:
    if popularity is None or math.isnan(popularity):
        return DEFAULT_POPULARITY
    return min(1.0, max(0.0, popularity))


def composite_score(breakdown: ScoreBreakdown, weights: ScoringWeights) -> float:
    """Weighted sum of the sub-scores, clamped to [0, 1]."""
    total = (
        weights.relevance * breakdown.relevance
        + weights.proximity * breakdown.proximity
        + weights.time_fit * breakdown.time_fit
        + weights.popularity * breakdown.popularity
    )
    return min(1.0, max(0.0, total))


def score_breakdown(
    event: UnifiedEvent,
    *,
    distance_meters: float,
    duration_minutes: float,
    budget_minutes: float,
    interests: Optional[Iterable[str]],
    decay_meters: float = DEFAULT_DECAY_METERS,
) -> ScoreBreakdown:
    """All four sub-scores for one candidate."""
    return ScoreBreakdown(
        relevance=relevance_score(event.category, interests),
        proximity=proximity_score(distance_meters, decay_meters),
        time_fit=time_fit_score(duration_minutes, budget_minutes),
        popularity=popularity_score(event.popularity),
    )
