"""Wires the pipeline components from settings."""

import logging
from typing import Optional

import httpx

from nearby.configs.settings import Settings, get_settings
from nearby.geo.resolver import GeoResolver
from nearby.ingestion.aggregator import EventAggregator
from nearby.ingestion.cache import CacheStore, InMemoryCacheStore
from nearby.ingestion.factory import ConnectorFactory
from nearby.ingestion.queue import RefreshQueue
from nearby.ingestion.store import EventStore, PostgresEventStore
from nearby.monitoring.metrics import MetricsRegistry
from nearby.ranking.engine import RankEngine

from .orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


def build_orchestrator(
    client: httpx.AsyncClient,
    settings: Optional[Settings] = None,
    *,
    cache: Optional[CacheStore] = None,
    store: Optional[EventStore] = None,
    refresh_queue: Optional[RefreshQueue] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> PipelineOrchestrator:
    """
    Build a PipelineOrchestrator.

    The HTTP client is shared by the geocoder and every connector and stays
    owned by the caller.

    Args:
        client: Shared async HTTP client
        settings: Application settings (defaults to ``get_settings()``)
        cache: Region cache (in-memory by default)
        store: Durable store; a PostgreSQL store is used when DATABASE_URL
            is set and none is given
        refresh_queue: Queue read by the worker that re-ingests regions;
            without one, store misses schedule nothing
        metrics: Registry shared by the aggregator and the orchestrator

    Returns:
        PipelineOrchestrator ready to serve requests
    """
    settings = settings or get_settings()

    connectors = ConnectorFactory(settings, client=client).create_all_enabled_connectors()
    configured = [c.name for c in connectors if c.is_configured()]
    logger.info(f"Connectors: {len(connectors)} enabled, configured: {configured or 'none'}")

    if store is None and settings.DATABASE_URL:
        store = PostgresEventStore(settings.get_psycopg2_params())
    metrics = metrics or MetricsRegistry()

    aggregator = EventAggregator(
        connectors,
        cache or InMemoryCacheStore(),
        store=store,
        refresh_queue=refresh_queue,
        ttl_range=(settings.CACHE_TTL_MIN_SECONDS, settings.CACHE_TTL_MAX_SECONDS),
        freshness_hours=settings.FRESHNESS_HOURS,
        metrics=metrics,
    )
    geo_resolver = GeoResolver(
        client=client,
        base_url=settings.GEOCODER_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=settings.GEOCODER_TIMEOUT_SECONDS,
    )
    return PipelineOrchestrator(
        geo_resolver,
        aggregator,
        RankEngine(),
        deadline_seconds=settings.PIPELINE_DEADLINE_SECONDS,
        outlier_radius_factor=settings.OUTLIER_RADIUS_FACTOR,
        metrics=metrics,
    )
