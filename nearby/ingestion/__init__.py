"""
Ingestion layer: provider connectors, rate limiting, caching and
aggregation of nearby events.
"""
