"""Application configuration."""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


def find_env_file() -> Optional[Path]:
    """Find .env file in the package directory or the project root."""
    current_dir = os.path.dirname(os.path.abspath(__file__))

    possible_paths = [
        os.path.join(current_dir, ".env"),
        os.path.join(os.path.dirname(current_dir), ".env"),
        os.path.join(os.path.dirname(os.path.dirname(current_dir)), ".env"),
    ]

    for path_str in possible_paths:
        if os.path.exists(path_str):
            path = Path(path_str)
            LOGGER.info(f"Found .env file at: {path}")
            return path

    LOGGER.debug("No .env file found in expected locations")
    return None


ENV_FILE = find_env_file()


def _settings_config() -> SettingsConfigDict:
    return SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )


class DatabaseSettings(BaseSettings):
    """Database connection and pool settings."""
    url: str = Field(default="sqlite+aiosqlite:///./site_evaluator.db", validation_alias="DATABASE_URL")
    pool_size: int = Field(default=10, validation_alias="DATABASE_POOL_SIZE")
    max_overflow: int = Field(default=20, validation_alias="DATABASE_MAX_OVERFLOW")
    echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")
    auto_migrate: bool = Field(default=True, validation_alias="DATABASE_AUTO_MIGRATE")

    @property
    def connection_url(self) -> str:
        """Get the connection URL with an async driver prefix."""
        raw_url = self.url
        if raw_url.startswith("postgres://") or raw_url.startswith("postgresql://"):
            _, rest = raw_url.split("://", 1)
            return f"postgresql+asyncpg://{rest}"
        return raw_url

    @property
    def is_sqlite(self) -> bool:
        return self.connection_url.startswith("sqlite")

    model_config = _settings_config()


class CacheSettings(BaseSettings):
    """Location cache freshness and provider call settings."""
    max_age_hours: int = Field(default=24, validation_alias="CACHE_MAX_AGE_HOURS")
    climate_max_age_hours: int = Field(default=24 * 7, validation_alias="CLIMATE_CACHE_MAX_AGE_HOURS")
    nearby_radius_m: float = Field(default=50.0, validation_alias="NEARBY_RADIUS_M")
    geotech_radius_m: float = Field(default=500.0, validation_alias="GEOTECH_RADIUS_M")
    hazard_event_radius_km: float = Field(default=50.0, validation_alias="HAZARD_EVENT_RADIUS_KM")
    hazard_event_since_years: int = Field(default=20, validation_alias="HAZARD_EVENT_SINCE_YEARS")
    provider_timeout_seconds: float = Field(default=20.0, validation_alias="PROVIDER_TIMEOUT_SECONDS")
    min_geocode_confidence: int = Field(default=60, validation_alias="MIN_GEOCODE_CONFIDENCE")

    model_config = _settings_config()


class ProviderSettings(BaseSettings):
    """External data provider selection and endpoints."""
    mode: str = Field(default="mock", validation_alias="PROVIDER_MODE")  # mock | live

    linz_base_url: str = Field(default="https://data.linz.govt.nz", validation_alias="LINZ_BASE_URL")
    linz_api_key: str = Field(default="", validation_alias="LINZ_API_KEY")
    landonline_base_url: str = Field(default="https://api.landonline.govt.nz", validation_alias="LANDONLINE_BASE_URL")
    landonline_api_key: str = Field(default="", validation_alias="LANDONLINE_API_KEY")

    model_config = _settings_config()


class StorageSettings(BaseSettings):
    """Report artifact storage settings."""
    backend: str = Field(default="database", validation_alias="STORAGE_BACKEND")  # database | supabase
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", validation_alias="SUPABASE_SERVICE_ROLE_KEY")
    bucket: str = Field(default="reports", validation_alias="STORAGE_BUCKET")

    model_config = _settings_config()


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="Site Evaluator", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        validation_alias="CORS_ORIGINS",
    )

    # API Settings
    api_v1_prefix: str = "/api/v1"
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    # Timeout Settings
    http_timeout: int = 60
    db_init_timeout: int = 30

    db: DatabaseSettings = Field(default_factory=lambda: DatabaseSettings())
    cache: CacheSettings = Field(default_factory=lambda: CacheSettings())
    providers: ProviderSettings = Field(default_factory=lambda: ProviderSettings())
    storage: StorageSettings = Field(default_factory=lambda: StorageSettings())

    model_config = _settings_config()

    @property
    def database_url(self) -> str:
        return self.db.connection_url


settings = Settings()

LOGGER.info(f"Settings initialized with environment: {settings.environment}")
LOGGER.info(f"Provider mode: {settings.providers.mode}, storage backend: {settings.storage.backend}")
