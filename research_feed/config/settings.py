"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the research-feed application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., REDIS_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Remote document store
    document_store_backend: Literal["redis", "memory"] = "redis"
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")

    # Relay endpoints (/fetch-feed, /fetch-nyt, /fetch-guardian, ...)
    relay_base_url: str = "http://localhost:8000"
    federal_register_api_url: str = "https://www.federalregister.gov/api/v1/documents.json"

    # Client-side fetching
    http_timeout_seconds: float = Field(default=30.0, gt=0.0)
    blog_summary_max_chars: int = Field(default=150, ge=1)

    # Upstream credentials (comma-separated for multiple keys with rotation)
    nyt_api_keys: str | None = None
    guardian_api_keys: str | None = None
    congress_api_keys: str | None = None

    # Bluesky (optional, enables elevated search limits and reposting)
    bluesky_handle: str | None = None
    bluesky_app_password: str | None = None

    # Upstream retry configuration (relay side only)
    upstream_max_retries: int = Field(default=2, ge=0, le=10)
    max_backoff_seconds: float = Field(default=30.0, ge=1.0, le=300.0)

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "*"
    cors_allow_credentials: bool = False

    # Observability
    metrics_port: int = 9100

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def bluesky_configured(self) -> bool:
        """Check if Bluesky credentials are configured."""
        return bool(self.bluesky_handle and self.bluesky_app_password)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
