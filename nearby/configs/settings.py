"""Centralized settings management for the suggestion pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import make_url


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the project root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # -------------------------------------------------------------------------
    # SOURCE API KEYS
    # -------------------------------------------------------------------------
    EVENTBRITE_TOKEN: SecretStr | None = None
    TICKETMASTER_KEY: SecretStr | None = None
    MEETUP_KEY: SecretStr | None = None
    GOOGLE_PLACES_KEY: SecretStr | None = None

    # -------------------------------------------------------------------------
    # GEOCODING
    # -------------------------------------------------------------------------
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "NearbySuggest/1.0"
    GEOCODER_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # -------------------------------------------------------------------------
    # CACHE & DURABLE STORE
    # -------------------------------------------------------------------------
    DATABASE_URL: str | None = None
    DATABASE_CONNECT_TIMEOUT_SECONDS: int = Field(default=3, gt=0)
    CACHE_TTL_MIN_SECONDS: int = Field(default=600, gt=0)
    CACHE_TTL_MAX_SECONDS: int = Field(default=1800, gt=0)
    FRESHNESS_HOURS: float = Field(default=2.0, gt=0)

    # -------------------------------------------------------------------------
    # PIPELINE
    # -------------------------------------------------------------------------
    PIPELINE_DEADLINE_SECONDS: float = Field(default=10.0, gt=0)
    OUTLIER_RADIUS_FACTOR: float = Field(default=3.0, gt=0)

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    BASE_DIR: Path = Path(__file__).resolve().parents[2]
    PROVIDERS_CONFIG_PATH: Path = Path(__file__).resolve().parent / "providers.yaml"

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_ttl_range(self) -> "Settings":
        """Ensure the randomized cache TTL window is well formed."""
        if self.CACHE_TTL_MIN_SECONDS > self.CACHE_TTL_MAX_SECONDS:
            raise ValueError(
                "CACHE_TTL_MIN_SECONDS must not exceed CACHE_TTL_MAX_SECONDS"
            )
        return self

    def provider_credential(self, provider: str) -> str | None:
        """
        Return the plain-text credential for a provider, if set.

        Parameters
        ----------
        provider : str
            Connector name (``eventbrite``, ``ticketmaster``, ``meetup``,
            ``google_places``).
        """
        secret = {
            "eventbrite": self.EVENTBRITE_TOKEN,
            "ticketmaster": self.TICKETMASTER_KEY,
            "meetup": self.MEETUP_KEY,
            "google_places": self.GOOGLE_PLACES_KEY,
        }.get(provider)
        if secret is None:
            return None
        value = secret.get_secret_value().strip()
        return value or None

    def get_psycopg2_params(self) -> dict:
        """
        Parse DATABASE_URL into psycopg2-compatible connection parameters.

        Uses sqlalchemy.make_url for robust parsing of complex connection strings.

        Returns
        -------
        dict
            psycopg2 connection arguments (host, port, dbname, user, password,
            connect_timeout).

        Raises
        ------
        ValueError
            If DATABASE_URL is not set.
        """
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is not configured")
        url = make_url(self.DATABASE_URL)
        return {
            "host": url.host,
            "port": url.port,
            "dbname": url.database,
            "user": url.username,
            "password": url.password,
            "connect_timeout": self.DATABASE_CONNECT_TIMEOUT_SECONDS,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
