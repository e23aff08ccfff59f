"""
Configuration management for LMS.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. Sensitive values (the store's
service credential, the tick secret) should be set via environment
variables or .env file.

Usage:
    from lms.config import settings
    print(settings.database_url)
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

# Service credentials shorter than this are almost certainly a placeholder
MIN_SERVICE_KEY_LENGTH = 20


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Store Configuration
    # ==========================================================================

    # Connection endpoint. The password part is supplied separately by
    # database_service_key so the URL itself can live in non-secret config.
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL of the backing store (without credential)",
    )
    database_service_key: Optional[str] = Field(
        default=None,
        description="Privileged credential used by the automation engine",
    )

    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # Tick Configuration
    # ==========================================================================

    tick_secret: Optional[str] = Field(
        default=None,
        description="Pre-shared secret the scheduler sends to /api/tick",
    )
    tick_bucket_minutes: int = Field(
        default=5,
        description="Width of the run-gate interval in minutes",
    )
    round_fallback_deadline_days: int = Field(
        default=7,
        description="Deadline offset for new rounds when the schedule is unknown",
    )
    result_source_enabled: bool = Field(
        default=False,
        description="Use the FPL API during ticks for fixture import and round deadlines",
    )

    # ==========================================================================
    # Result Source (Fantasy Premier League API)
    # ==========================================================================

    fpl_base_url: str = Field(
        default="https://fantasy.premierleague.com/api",
        description="Base URL of the FPL public API",
    )
    fpl_timeout_seconds: float = Field(
        default=15.0,
        description="HTTP timeout for result source requests",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================

    api_host: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to",
    )
    api_port: int = Field(
        default=8000,
        description="Port for the API server",
    )
    app_version: str = Field(
        default="1.0.0",
        description="Version reported by /api/health",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("tick_bucket_minutes")
    @classmethod
    def validate_bucket(cls, v: int) -> int:
        if v < 1 or v > 60:
            raise ValueError("tick_bucket_minutes must be between 1 and 60")
        return v

    # ==========================================================================
    # Store helpers
    # ==========================================================================

    def engine_config_problems(self) -> list[str]:
        """
        Return human-readable problems with the store configuration.

        An empty list means the engine can be built. The tick endpoint
        checks this before touching the store so misconfiguration fails
        fast with a configuration error instead of a connection error.
        """
        problems: list[str] = []
        url = (self.database_url or "").strip()
        if not url:
            problems.append("DATABASE_URL is not set")
        else:
            try:
                make_url(url)
            except ArgumentError:
                problems.append("DATABASE_URL is not a valid database URL")

        key = (self.database_service_key or "").strip()
        if not key:
            problems.append("DATABASE_SERVICE_KEY is not set")
        elif len(key) < MIN_SERVICE_KEY_LENGTH:
            problems.append("DATABASE_SERVICE_KEY looks truncated")
        return problems

    def store_url(self) -> URL:
        """Build the connection URL with the service credential applied."""
        url = make_url((self.database_url or "").strip())
        key = (self.database_service_key or "").strip()
        if key and not url.drivername.startswith("sqlite"):
            url = url.set(password=key)
        return url


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
