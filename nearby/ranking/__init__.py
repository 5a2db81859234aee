"""Candidate scoring and ranking."""

from .engine import RankEngine
from .scoring import ScoringWeights

__all__ = ["RankEngine", "ScoringWeights"]
