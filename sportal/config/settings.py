import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Supabase Configuration
    supabase_url: Optional[str] = Field(
        None, description="URL for the Supabase project."
    )
    supabase_key: Optional[str] = Field(
        None, description="Anon key for the Supabase project."
    )
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key for Supabase (use with caution!)."
    )
    organizations_table: str = Field(
        "organizations", description="Table holding organization rows."
    )

    # PlayHQ Configuration
    playhq_base_url: str = Field(
        "https://api.playhq.com", description="Base URL of the PlayHQ API."
    )
    playhq_default_tenant: str = Field(
        "ca", description="Tenant header used when an organization has none."
    )
    request_timeout_seconds: float = Field(
        30.0,
        gt=0,
        description="Timeout applied to every upstream request, in seconds.",
    )

    # Aggregation Settings
    fixture_window_days: int = Field(
        21,
        ge=0,
        description="Fixtures within this many days of today are kept.",
    )
    team_batch_size: int = Field(
        2,
        ge=1,
        description="Teams whose fixtures are fetched concurrently (429 guard).",
    )

    # Cache Settings
    cache_max_age_hours: float = Field(
        6, gt=0, description="Age after which a cached blob is stale."
    )
    cache_write_attempts: int = Field(
        3, ge=1, description="Attempts made when writing the cache blob."
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
