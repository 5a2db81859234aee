"""
Unit tests for the RankEngine.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from nearby.ranking.engine import RankEngine
from nearby.ranking.scoring import ScoringWeights

LAT, LON = 37.7749, -122.4194
START = datetime(2024, 6, 15, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    return RankEngine()


class TestScoreEvent:
    """Tests for RankEngine.score_event."""

    def test_score_is_weighted_sum_of_breakdown(self, engine, create_event):
        """Should compute score = sum(w_i * s_i)."""
        event = create_event(category=["music", "jazz", "live"], lat=LAT + 0.01, lon=LON, popularity=0.7)

        scored = engine.score_event(event, LAT, LON, 120, ["music", "rock"])

        b = scored.score_breakdown
        assert b.relevance == pytest.approx(0.25)
        assert b.proximity == pytest.approx(0.8888, abs=1e-3)
        assert b.time_fit == 1.0
        assert b.popularity == pytest.approx(0.7)
        expected = 0.4 * b.relevance + 0.3 * b.proximity + 0.2 * b.time_fit + 0.1 * b.popularity
        assert scored.score == pytest.approx(expected)
        assert 0.0 <= scored.score <= 1.0

    def test_distance_and_duration_are_rounded(self, engine, create_event):
        """Should expose whole meters and minutes."""
        event = create_event(lat=LAT + 0.01, lon=LON, start_at=START, end_at=START + timedelta(minutes=95, seconds=40))

        scored = engine.score_event(event, LAT, LON, 120)

        assert scored.distance_meters == 1112
        assert scored.duration_minutes == 96

    def test_venue_less_event_is_at_requester(self, engine, create_event):
        """Should treat missing venues as zero distance."""
        scored = engine.score_event(create_event(lat=None, lon=None), LAT, LON, 120)

        assert scored.distance_meters == 0
        assert scored.score_breakdown.proximity == 1.0

    def test_keeps_event_fields(self, engine, create_event):
        """Should carry all UnifiedEvent fields over."""
        event = create_event(provider="meetup", provider_id="m-1", title="Hike")

        scored = engine.score_event(event, LAT, LON, 120)

        assert scored.identity == ("meetup", "m-1")
        assert scored.title == "Hike"

    def test_custom_weights(self, create_event):
        """Should honor custom weights."""
        engine = RankEngine(weights=ScoringWeights(relevance=1.0, proximity=0.0, time_fit=0.0, popularity=0.0))

        scored = engine.score_event(create_event(category=["music"]), LAT, LON, 120, ["music"])

        assert scored.score == pytest.approx(1.0)

    def test_rejects_non_positive_decay(self):
        """Should refuse a zero decay distance."""
        with pytest.raises(ValueError):
            RankEngine(decay_meters=0)


class TestRank:
    """Tests for RankEngine.rank."""

    def test_sorted_descending(self, engine, create_event):
        """Should order candidates by score, highest first."""
        events = [
            create_event(provider_id="far", lat=LAT + 0.08, lon=LON),
            create_event(provider_id="near", lat=LAT + 0.001, lon=LON),
            create_event(provider_id="mid", lat=LAT + 0.03, lon=LON),
        ]

        ranked = engine.rank(events, LAT, LON, 120)

        assert [s.provider_id for s in ranked] == ["near", "mid", "far"]
        scores = [s.score for s in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self, engine, create_event):
        """Should be stable for equal scores."""
        events = [create_event(provider_id=str(i)) for i in range(5)]

        ranked = engine.rank(events, LAT, LON, 120)

        assert [s.provider_id for s in ranked] == ["0", "1", "2", "3", "4"]

    def test_interests_boost_relevant_events(self, engine, create_event):
        """Should rank matching categories above non-matching ones."""
        events = [
            create_event(provider_id="sports", category=["sports"]),
            create_event(provider_id="music", category=["music"]),
        ]

        ranked = engine.rank(events, LAT, LON, 120, ["music"])

        assert ranked[0].provider_id == "music"

    def test_empty_input(self, engine):
        """Should return an empty list."""
        assert engine.rank([], LAT, LON, 120) == []

    def test_unscorable_candidate_is_dropped(self, engine, create_event):
        """Should skip a candidate that fails to score and keep the rest."""
        bad = create_event(provider_id="bad")
        good = create_event(provider_id="good")

        real = RankEngine.score_event

        def flaky(self, event, *args, **kwargs):
            if event.provider_id == "bad":
                return real(self, event, float("nan"), LON, 120)
            return real(self, event, *args, **kwargs)

        with patch.object(RankEngine, "score_event", flaky):
            ranked = engine.rank([bad, good], LAT, LON, 120)

        assert [s.provider_id for s in ranked] == ["good"]
