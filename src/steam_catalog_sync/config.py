"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables (and an optional .env
file) with validation, type coercion, and sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _section(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class SteamAPIConfig(BaseSettings):
    """Steam Store API configuration and its request budget."""

    model_config = _section("STEAM_")

    store_url: str = Field(
        default="https://store.steampowered.com/api",
        description="Base URL for Steam Store API",
    )
    country_code: str = Field(default="US", description="Country used for pricing")
    language: str = Field(default="english", description="Language for descriptions")
    timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=120,
        description="HTTP request timeout in seconds",
    )
    concurrency: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Maximum detail fetches in flight",
    )
    interval_cap: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Maximum detail fetches started per interval",
    )
    interval_seconds: float = Field(
        default=1.0,
        gt=0,
        le=60.0,
        description="Length of the admission interval",
    )
    task_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        le=600.0,
        description="Budget for a single detail fetch",
    )


class GeForceNowConfig(BaseSettings):
    """GeForce NOW game list configuration."""

    model_config = _section("GFN_")

    api_url: str = Field(
        default="https://api-prod.nvidia.com/gfngames/v1/gameList",
        description="GraphQL endpoint backing the public GFN games page",
    )
    country: str = Field(default="US")
    app_store: str = Field(default="STEAM")
    page_size: int = Field(default=1300, ge=1, le=5000)
    max_pages: int = Field(default=3, ge=1, le=20)
    min_expected_games: int = Field(
        default=1000,
        ge=0,
        description="Refuse results smaller than this (partial API response)",
    )
    timeout_seconds: int = Field(default=60, ge=1, le=300)


class DatoCMSConfig(BaseSettings):
    """DatoCMS content management API configuration."""

    model_config = _section("DATOCMS_")

    api_token: SecretStr | None = Field(
        default=None,
        description="Full-access API token of the DatoCMS project",
    )
    base_url: str = Field(default="https://site-api.datocms.com")
    model_type: str = Field(
        default="game",
        description="API key of the model listed when building the index",
    )
    item_type_id: str = Field(
        default="MD-Tx1HTQdyQtR5kV5zN5Q",
        description="Model id attached to created records",
    )
    page_size: int = Field(default=200, ge=1, le=500)
    listing_concurrency: int = Field(default=3, ge=1, le=20)
    timeout_seconds: int = Field(default=60, ge=1, le=300)
    concurrency: int = Field(default=30, ge=1, le=100)
    # DatoCMS allows 60 requests every 3 seconds; stay at half of it.
    # Bounds both task starts and every individual CMA request.
    interval_cap: int = Field(default=30, ge=1, le=60)
    interval_seconds: float = Field(default=3.0, gt=0, le=60.0)
    task_timeout_seconds: float = Field(default=120.0, gt=0, le=900.0)
    job_poll_interval_seconds: float = Field(default=1.0, gt=0, le=30.0)
    job_poll_attempts: int = Field(default=30, ge=1, le=300)


class RetryConfig(BaseSettings):
    """Retry behavior for idempotent reads."""

    model_config = _section("RETRY_")

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of retry attempts",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Base delay between retries (exponential backoff)",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=300.0,
        description="Maximum delay between retries",
    )
    exponential_base: float = Field(
        default=2.0,
        ge=1.5,
        le=4.0,
        description="Base for exponential backoff calculation",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = _section("LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(
        default=True,
        description="Include timestamp in log entries",
    )


class PathsConfig(BaseSettings):
    """Local files produced and consumed by the pipeline."""

    model_config = _section("CATALOG_")

    data_dir: Path = Field(default=Path("outputs"))
    details_dirname: str = Field(default="steamDetails")
    keys_filename: str = Field(default="steamIds.json")
    availability_filename: str = Field(default="games-on-geforce-now.json")
    readme_path: Path = Field(
        default=Path("README.md"),
        description="Curated markdown document listing the games",
    )

    @property
    def details_dir(self) -> Path:
        return self.data_dir / self.details_dirname

    @property
    def keys_file(self) -> Path:
        return self.data_dir / self.keys_filename

    @property
    def availability_file(self) -> Path:
        return self.data_dir / self.availability_filename


class SyncConfig(BaseSettings):
    """Field derivation settings."""

    model_config = _section("SYNC_")

    reference_timezone: str = Field(
        default="America/Los_Angeles",
        description="Timezone Steam release dates are interpreted in",
    )

    @field_validator("reference_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA timezone names."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides
    a single entry point for configuration access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Sub-configurations
    steam: SteamAPIConfig = Field(default_factory=SteamAPIConfig)
    geforce_now: GeForceNowConfig = Field(default_factory=GeForceNowConfig)
    datocms: DatoCMSConfig = Field(default_factory=DatoCMSConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @model_validator(mode="after")
    def require_token_in_production(self) -> "Settings":
        """Production runs always write, so they need a token up front."""
        if self.environment == "production" and self.datocms.api_token is None:
            raise ValueError("DATOCMS_API_TOKEN is required in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once
    and reused across the application.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
