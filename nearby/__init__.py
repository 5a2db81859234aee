"""
Nearby suggestion pipeline.

Recommends nearby events and places for a location, a time budget and a set
of interests by fanning out to several event sources, caching the combined
result per region and ranking it with a transparent weighted score.

Key Components:
- PipelineOrchestrator: single entry point (geo -> aggregate -> rank -> top N)
- EventAggregator: rate-limited, cached fan-out to provider connectors
- RankEngine: relevance / proximity / time-fit / popularity scoring
"""

__version__ = "0.1.0"
