"""
Connector Factory for config-driven connector creation.

Reads the per-source blocks of ``providers.yaml`` and the credentials from
Settings, and builds one connector per enabled source.

Usage:
    from nearby.ingestion.factory import ConnectorFactory

    factory = ConnectorFactory(get_settings())
    connectors = factory.create_all_enabled_connectors()
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from nearby.configs.config import Config, load_yaml
from nearby.configs.settings import Settings

from .adapters import CONNECTOR_CLASSES, ConnectorConfig, HTTPConnector

logger = logging.getLogger(__name__)


class ConnectorFactory:
    """
    Factory for creating provider connectors from configuration.

    Connectors created by one factory share its HTTP client when one is
    given.
    """

    def __init__(
        self,
        settings: Settings,
        providers_config: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the factory.

        Args:
            settings: Application settings (credentials, config path)
            providers_config: Parsed providers.yaml; loaded from
                ``settings.PROVIDERS_CONFIG_PATH`` if omitted
            client: Shared async HTTP client for every connector
        """
        self.settings = settings
        self.client = client
        self._config = providers_config

    @property
    def config(self) -> Dict[str, Any]:
        """Load and cache configuration."""
        if self._config is None:
            path = Path(self.settings.PROVIDERS_CONFIG_PATH)
            if path.resolve() == Config.PROVIDERS_CONFIG_PATH.resolve():
                self._config = Config.load_providers_config()
            else:
                self._config = load_yaml(path)
        return self._config

    def get_provider_config(self, name: str) -> Dict[str, Any]:
        """Config block for one provider (empty dict if absent)."""
        return (self.config.get("providers") or {}).get(name) or {}

    def list_providers(self) -> Dict[str, Dict[str, bool]]:
        """
        List known providers with their status.

        Returns:
            Dict mapping provider -> {enabled: bool, configured: bool}
        """
        return {
            name: {
                "enabled": bool(self.get_provider_config(name).get("enabled", True)),
                "configured": self.settings.provider_credential(name) is not None,
            }
            for name in CONNECTOR_CLASSES
        }

    def create_connector(self, name: str) -> HTTPConnector:
        """
        Create the connector for one provider.

        Raises:
            ValueError: If the provider is unknown or has no endpoint
        """
        connector_class = CONNECTOR_CLASSES.get(name)
        if connector_class is None:
            raise ValueError(f"Unknown provider: {name}")

        block = self.get_provider_config(name)
        if not block.get("endpoint"):
            raise ValueError(f"Provider '{name}' has no endpoint configured")

        config = ConnectorConfig.from_dict(
            name, block, api_key=self.settings.provider_credential(name)
        )
        return connector_class(config, client=self.client)

    def create_all_enabled_connectors(self) -> List[HTTPConnector]:
        """Create connectors for every enabled provider, in declaration order."""
        connectors = []
        for name, status in self.list_providers().items():
            if not status["enabled"]:
                logger.info(f"Provider {name} disabled in config")
                continue
            try:
                connectors.append(self.create_connector(name))
            except ValueError as e:
                logger.warning(f"Failed to create connector '{name}': {e}")
        return connectors
