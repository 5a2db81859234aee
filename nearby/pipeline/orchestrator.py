"""
Pipeline Orchestrator.

Single entry point of the suggestion pipeline:

    validate -> resolve location -> aggregate candidates -> rank -> top N

Only malformed input fails a request. Every downstream failure degrades to a
partial (possibly empty) answer.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from nearby.errors import GeoResolutionError, ValidationError
from nearby.geo.distance import bounding_box
from nearby.geo.resolver import GeoResolver
from nearby.ingestion.aggregator import EventAggregator
from nearby.monitoring.logging import with_context
from nearby.monitoring.metrics import (
    SUGGEST_DURATION,
    SUGGEST_REQUESTS,
    SUGGEST_RESULTS,
    MetricsRegistry,
)
from nearby.ranking.engine import RankEngine
from nearby.schemas.geo import Coordinates, GeoResolution
from nearby.schemas.suggest import SuggestMetadata, SuggestRequest, SuggestResponse

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 10.0
DEFAULT_OUTLIER_RADIUS_FACTOR = 3.0


class PipelineOrchestrator:
    """
    Composes GeoResolver, EventAggregator and RankEngine.

    The whole request is bounded by ``deadline_seconds``; candidates farther
    than ``radius_meters * outlier_radius_factor`` are dropped after ranking.
    """

    def __init__(
        self,
        geo_resolver: GeoResolver,
        aggregator: EventAggregator,
        rank_engine: Optional[RankEngine] = None,
        *,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
        outlier_radius_factor: float = DEFAULT_OUTLIER_RADIUS_FACTOR,
        clock: Callable[[], float] = time.perf_counter,
        metrics: Optional[MetricsRegistry] = None,
    ):
        self.geo_resolver = geo_resolver
        self.aggregator = aggregator
        self.rank_engine = rank_engine or RankEngine()
        self.deadline_seconds = deadline_seconds
        self.outlier_radius_factor = outlier_radius_factor
        self._clock = clock
        self.metrics = metrics or MetricsRegistry()

    @staticmethod
    def validate_request(request: Union[SuggestRequest, Mapping[str, Any]]) -> SuggestRequest:
        """
        Coerce raw input into a SuggestRequest.

        Raises:
            ValidationError: If any field is missing or out of range
        """
        if isinstance(request, SuggestRequest):
            return request
        if not isinstance(request, Mapping):
            raise ValidationError(
                f"Suggest request must be a mapping, got {type(request).__name__}"
            )
        try:
            return SuggestRequest.model_validate(dict(request))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid suggest request ({e.error_count()} error(s))",
                errors=e.errors(include_url=False),
            ) from e

    async def suggest(self, request: Union[SuggestRequest, Mapping[str, Any]]) -> SuggestResponse:
        """
        Run the pipeline for one request.

        Returns:
            SuggestResponse with at most ``limit`` suggestions

        Raises:
            ValidationError: For malformed input (nothing else escapes)
        """
        started = self._clock()
        try:
            req = self.validate_request(request)
        except ValidationError:
            self.metrics.inc(SUGGEST_REQUESTS, labels={"status": "invalid"})
            raise
        log = with_context(logger, request_id=uuid.uuid4().hex[:12], stage="suggest")
        log.info(
            "Suggest started",
            extra={
                "payload": {
                    "lat": req.lat,
                    "lon": req.lon,
                    "minutes_available": req.minutes_available,
                    "limit": req.limit,
                }
            },
        )

        # Step 1: location
        location = await self._resolve_location(req, self._remaining(started))

        # Step 2: candidates
        start_time = req.now or datetime.now(timezone.utc)
        aggregation = await self.aggregator.search(
            req.lat,
            req.lon,
            req.radius_meters,
            start_time=start_time,
            timeout=self._remaining(started),
        )
        log.info(
            f"Aggregated {len(aggregation.events)} candidates from {aggregation.source}",
            extra={"payload": {"providers": aggregation.providers}},
        )

        # Step 3: ranking
        ranked = self.rank_engine.rank(
            aggregation.events,
            req.lat,
            req.lon,
            req.minutes_available,
            req.interests,
        )
        max_distance = req.radius_meters * self.outlier_radius_factor
        in_range = [s for s in ranked if s.distance_meters <= max_distance]
        if len(in_range) < len(ranked):
            log.debug(f"Dropped {len(ranked) - len(in_range)} candidates beyond {max_distance:.0f}m")

        # Step 4: top N
        suggestions = in_range[: req.limit]
        processing_time_ms = round((self._clock() - started) * 1000, 1)

        self.metrics.inc(SUGGEST_REQUESTS, labels={"status": "ok"})
        self.metrics.observe(SUGGEST_DURATION, processing_time_ms / 1000)
        self.metrics.observe(SUGGEST_RESULTS, len(suggestions))

        log.info(
            f"Suggest completed: {len(suggestions)} of {len(aggregation.events)} "
            f"in {processing_time_ms}ms"
        )
        return SuggestResponse(
            suggestions=suggestions,
            metadata=SuggestMetadata(
                total_found=len(aggregation.events),
                providers=aggregation.providers,
                cached=aggregation.cached,
                processing_time_ms=max(0.0, processing_time_ms),
            ),
            location=location,
        )

    def _remaining(self, started: float) -> float:
        return max(0.0, self.deadline_seconds - (self._clock() - started))

    async def _resolve_location(self, req: SuggestRequest, timeout: float) -> GeoResolution:
        try:
            return await asyncio.wait_for(
                self.geo_resolver.resolve(req.lat, req.lon, req.radius_meters),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Location resolution timed out after {timeout:.1f}s")
        except GeoResolutionError as e:
            logger.warning(f"Location resolution failed: {e}")
        return GeoResolution(
            bounding_box=bounding_box(req.lat, req.lon, req.radius_meters),
            center=Coordinates(lat=req.lat, lon=req.lon),
        )
