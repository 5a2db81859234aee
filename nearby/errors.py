"""
Error taxonomy for the suggestion pipeline.

Only ValidationError is meant to reach the caller of the orchestrator; every
other error is absorbed by the component that owns the failing collaborator
and turned into a partial (possibly empty) result.
"""

from __future__ import annotations

from typing import Any


class NearbyError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(NearbyError):
    """A connector is missing the credentials it needs to run."""

    def __init__(self, provider: str, message: str | None = None):
        self.provider = provider
        super().__init__(message or f"Provider '{provider}' is not configured")


class ProviderError(NearbyError):
    """Network, HTTP or payload failure from one external source."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class CacheError(NearbyError):
    """The cache store could not be read or written."""


class StoreError(NearbyError):
    """The durable fallback store or the refresh queue failed."""


class GeoResolutionError(NearbyError):
    """The reverse geocoder was unreachable or returned a malformed answer."""


class ValidationError(NearbyError, ValueError):
    """
    Malformed orchestrator input.

    Raised before any pipeline work begins. ``errors`` carries the
    field-level details reported by pydantic.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(message)


class ScoringError(NearbyError):
    """A single candidate could not be scored."""

    def __init__(self, identity: tuple[str, str] | None, message: str):
        self.identity = identity
        super().__init__(message)
