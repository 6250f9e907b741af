"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MINETWIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_path: str = Field(
        default="data/minetwin.sqlite",
        description="SQLite database holding twins, constraints and telemetry",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )

    # Query behaviour
    default_window_minutes: int = Field(
        default=60,
        description="Time window used when an intent does not state one",
    )
    current_query_min_window_minutes: int = Field(
        default=30,
        description="Minimum window for current-value and property queries",
    )

    # Property resolution
    suggestion_limit: int = Field(
        default=5,
        description="Maximum number of property suggestions returned on a miss",
    )
    suggestion_max_distance: int = Field(
        default=3,
        description="Maximum edit distance for a property suggestion",
    )

    # Tracing
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    tracing_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP collector endpoint (e.g. http://localhost:4317)",
    )
    tracing_console: bool = Field(
        default=False,
        description="Emit traces to console (debug only)",
    )
    tracing_service_name: str = Field(
        default="minetwin",
        description="Service name reported on spans",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
