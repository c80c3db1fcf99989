"""
Application settings using Pydantic.

Provides environment-based configuration loading with DTSLI_ prefix.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DTSLI_",
        extra="ignore",
        populate_by_name=True,
    )

    # Dynatrace tenant (fallback credential set "dynatrace")
    dt_tenant: str | None = Field(
        default=None, validation_alias=AliasChoices("DTSLI_DT_TENANT", "DT_TENANT")
    )
    dt_api_token: str | None = Field(
        default=None, validation_alias=AliasChoices("DTSLI_DT_API_TOKEN", "DT_API_TOKEN")
    )

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 2.0

    # Local resource tree for sli.yaml / dynatrace.conf.yaml / generated files
    resource_dir: str = "./resources"

    fetch_slo_sli_from_dashboard: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "DTSLI_FETCH_SLO_SLI_FROM_DASHBOARD", "FETCH_SLO_SLI_FROM_DASHBOARD"
        ),
    )

    # Freshness wait polling interval
    data_wait_poll_seconds: float = 10.0

    log_level: str = "INFO"
    # "json" for machine consumption, "console" for local runs
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
