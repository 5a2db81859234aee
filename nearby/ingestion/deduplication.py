"""
Event deduplication strategies.

Connectors can return the same record twice (paging overlap, repeated
listings). The aggregator collapses candidates sharing an identity key
before caching.
"""

from abc import ABC, abstractmethod

from nearby.schemas.event import UnifiedEvent


class EventDeduplicator(ABC):
    """Abstract base for deduplication strategies."""

    @abstractmethod
    def deduplicate(self, events: list[UnifiedEvent]) -> list[UnifiedEvent]:
        """Deduplicate events and return unique set."""
        pass


class IdentityDeduplicator(EventDeduplicator):
    """Match by ``(provider, provider_id)``."""

    def deduplicate(self, events: list[UnifiedEvent]) -> list[UnifiedEvent]:
        """
        Keep one event per identity key.

        The most popular duplicate wins; on a tie the earliest is kept. The
        survivor takes the position of the first occurrence, so the outcome
        does not depend on which duplicate arrived first.

        Returns:
            List of unique events
        """
        best: dict[tuple[str, str], UnifiedEvent] = {}
        order: list[tuple[str, str]] = []

        for event in events:
            key = event.identity
            current = best.get(key)
            if current is None:
                best[key] = event
                order.append(key)
            elif event.popularity > current.popularity:
                best[key] = event

        return [best[key] for key in order]
