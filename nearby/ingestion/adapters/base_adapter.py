"""
Base Provider Connector.

Abstract base class defining the capability contract every external
event/place source implements. The aggregator only ever talks to this
interface; it never knows which concrete sources are configured.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from nearby.errors import ConfigurationError
from nearby.schemas.event import UnifiedEvent


@dataclass
class ConnectorConfig:
    """
    Configuration for one provider connector.

    Built from the ``providers.yaml`` block for the source plus the
    credential read from settings.
    """

    name: str
    base_url: str
    api_key: Optional[str] = None
    enabled: bool = True
    timeout_seconds: float = 10.0
    rate_limit_capacity: float = 10.0
    rate_limit_per_second: float = 1.0
    page_size: int = 50
    headers: Dict[str, str] = field(default_factory=dict)
    custom_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls,
        name: str,
        data: Dict[str, Any],
        api_key: Optional[str] = None,
    ) -> "ConnectorConfig":
        """
        Build a config from a providers.yaml block.

        Args:
            name: Connector name (e.g. "ticketmaster")
            data: The provider's YAML mapping
            api_key: Credential from settings (None when unset)

        Returns:
            ConnectorConfig
        """
        rate_limit = data.get("rate_limit") or {}
        known = {"enabled", "endpoint", "timeout_seconds", "page_size", "rate_limit", "headers"}
        return cls(
            name=name,
            base_url=str(data.get("endpoint", "")).rstrip("/"),
            api_key=api_key,
            enabled=data.get("enabled", True),
            timeout_seconds=float(data.get("timeout_seconds", 10.0)),
            rate_limit_capacity=float(rate_limit.get("capacity", 10.0)),
            rate_limit_per_second=float(rate_limit.get("refill_rate", 1.0)),
            page_size=int(data.get("page_size", 50)),
            headers=dict(data.get("headers") or {}),
            custom_config={k: v for k, v in data.items() if k not in known},
        )


class ProviderConnector(ABC):
    """
    Abstract base class for provider connectors.

    Connectors normalize one external source into UnifiedEvent. They provide
    a unified interface the aggregator uses regardless of the underlying
    source.

    Subclasses must implement:
        - is_configured(): whether credentials are present
        - search(): query the source around a coordinate
    """

    name: str = "provider"

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"nearby.connector.{self.name}")

    @abstractmethod
    def is_configured(self) -> bool:
        """Return True when the connector has everything it needs to run."""
        pass

    @abstractmethod
    async def search(
        self,
        lat: float,
        lon: float,
        radius_meters: int,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[UnifiedEvent]:
        """
        Search the source around a coordinate.

        Returns an empty list when the connector is not configured.

        Raises:
            ProviderError: On transport or payload failures
        """
        pass

    def require_configured(self) -> None:
        """
        Raise ConfigurationError when credentials are missing.

        Raises:
            ConfigurationError: If is_configured() is False
        """
        if not self.is_configured():
            raise ConfigurationError(self.name)

    async def close(self) -> None:
        """
        Release any resources held by the connector.

        Override in subclasses that hold resources (e.g., HTTP clients).
        """
        pass

    async def __aenter__(self) -> "ProviderConnector":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
