"""
HTTP Provider Connector.

Shared request/response plumbing for the JSON-over-HTTP sources. Concrete
connectors only describe their request shape and field mapping.
"""

import logging
import math
from abc import abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx

from nearby.errors import ProviderError
from nearby.ingestion.rate_limiter import RateLimiter
from nearby.schemas.event import UnifiedEvent, Venue

from .base_adapter import ConnectorConfig, ProviderConnector

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34
USER_AGENT = "NearbySuggest/1.0"


class HTTPConnector(ProviderConnector):
    """
    Connector for JSON REST sources.

    Provides:
    - Credential check (is_configured)
    - One RateLimiter per connector, sized from config
    - Injected or lazily-created httpx.AsyncClient
    - Error mapping to ProviderError
    - Per-record mapping that skips malformed records
    """

    def __init__(
        self,
        config: ConnectorConfig,
        client: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """
        Initialize the connector.

        Args:
            config: ConnectorConfig with endpoint, credential and quota
            client: Shared async HTTP client; one is created on demand if omitted
            rate_limiter: Override the limiter built from config (tests)
        """
        self.name = config.name
        super().__init__()
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter(
            config.rate_limit_capacity,
            config.rate_limit_per_second,
            name=config.name,
        )
        self._client = client
        self._owns_client = client is None

    def is_configured(self) -> bool:
        """Configured when a non-blank credential is present."""
        return bool(self.config.api_key and self.config.api_key.strip())

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            headers = {
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
                **self.config.headers,
            }
            self._client = httpx.AsyncClient(headers=headers)
            self._owns_client = True
        return self._client

    # ========================================================================
    # SEARCH
    # ========================================================================

    async def search(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[UnifiedEvent]:
        """
        Query the source and normalize its records.

        Returns:
            List of UnifiedEvent ([] when not configured)

        Raises:
            ProviderError: On transport, HTTP status or payload-shape failures
        """
        if not self.is_configured():
            self.logger.info(f"{self.name} credentials not configured, skipping")
            return []

        await self.rate_limiter.acquire()

        path, params, headers = self.build_request(
            lat, lon, radius_meters, start_time, end_time
        )
        self.logger.info(
            f"Searching {self.name}",
            extra={"payload": {"lat": lat, "lon": lon, "radius_meters": radius_meters}},
        )
        payload = await self._request_json(path, params, headers)
        events = self.parse_payload(payload)
        self.logger.info(f"{self.name} returned {len(events)} records")
        return events

    async def _request_json(
        self,
        path: str,
        params: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> dict:
        """
        GET ``base_url + path`` and decode the JSON object body.

        Raises:
            ProviderError: On any transport, status or decoding failure
        """
        url = f"{self.config.base_url}{path}"
        clean_params = {k: v for k, v in params.items() if v is not None}
        client = self._get_client()

        try:
            response = await client.get(
                url,
                params=clean_params,
                headers=headers or {},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name, f"HTTP {e.response.status_code} from {url}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"Request to {url} failed: {e!r}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(self.name, "Response body is not valid JSON") from e

        if not isinstance(payload, dict):
            raise ProviderError(
                self.name, f"Expected a JSON object, got {type(payload).__name__}"
            )
        return payload

    def parse_payload(self, payload: dict) -> list[UnifiedEvent]:
        """
        Map a decoded response into UnifiedEvents.

        A malformed record is skipped with a warning; a malformed payload
        raises ProviderError.
        """
        records = self.extract_records(payload)
        if not isinstance(records, list):
            raise ProviderError(
                self.name, f"Expected a list of records, got {type(records).__name__}"
            )

        events: list[UnifiedEvent] = []
        for record in records:
            try:
                events.append(self.transform(record))
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                record_id = record.get("id") if isinstance(record, dict) else None
                self.logger.warning(f"Skipping malformed {self.name} record {record_id}: {e}")
        return events

    # ========================================================================
    # SOURCE-SPECIFIC HOOKS
    # ========================================================================

    @abstractmethod
    def build_request(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[str, dict[str, Any], dict[str, str]]:
        """Return ``(path, query params, extra headers)`` for one search."""
        pass

    @abstractmethod
    def extract_records(self, payload: dict) -> list:
        """Pull the raw record list out of a decoded response."""
        pass

    @abstractmethod
    def transform(self, record: dict) -> UnifiedEvent:
        """Map one raw record into a UnifiedEvent."""
        pass

    async def close(self) -> None:
        """Close the HTTP client if this connector created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


# ============================================================================
# MAPPING HELPERS
# ============================================================================


def to_float(value: Any) -> float | None:
    """Parse a number that may arrive as a string; None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def build_venue(
    lat: Any,
    lon: Any,
    name: str | None = None,
    address: str | None = None,
) -> Venue | None:
    """
    Build a Venue, or None when the coordinates are missing or unusable.

    (0, 0) is treated as missing: sources emit it for online or unplaced
    records.
    """
    lat_f = to_float(lat)
    lon_f = to_float(lon)
    if lat_f is None or lon_f is None:
        return None
    if lat_f == 0 and lon_f == 0:
        return None
    if not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
        return None
    return Venue(name=name or None, address=address or None, lat=lat_f, lon=lon_f)


def join_address(*parts: Any) -> str | None:
    """Join non-empty address components with ", "."""
    cleaned = [str(p).strip() for p in parts if p is not None and str(p).strip()]
    return ", ".join(cleaned) if cleaned else None


def radius_in_miles(radius_meters: float) -> int:
    """Round a radius up to whole miles."""
    return math.ceil(radius_meters / METERS_PER_MILE)


def radius_in_km(radius_meters: float) -> int:
    """Round a radius up to whole kilometers."""
    return math.ceil(radius_meters / 1000)


def format_utc(value: datetime | None, fmt: str = "%Y-%m-%dT%H:%M:%SZ") -> str | None:
    """Format a datetime in UTC without fractional seconds."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(fmt)


def popularity_from(score: float) -> float:
    """Cap an additive popularity heuristic at 1."""
    return min(1.0, max(0.0, score))
