"""Application settings using Pydantic Settings.

Centralized configuration for the lead intake service.

Storage credentials are read from the process environment:
- SUPABASE_URL: Base URL of the storage project (NEXT_PUBLIC_SUPABASE_URL accepted)
- SUPABASE_SERVICE_ROLE_KEY: Privileged service key (SUPABASE_KEY accepted)

Missing credentials never fail at import time. The intake endpoint reports
them as a configuration error (HTTP 500) before making any network call.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StorageSettings(BaseSettings):
    """Remote lead table (PostgREST/Supabase) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
        description="Storage project base URL",
    )
    service_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY"),
        description="Privileged service credential",
    )
    timeout: float = Field(default=10.0, description="Storage request timeout in seconds")

    leads_table: str = Field(default="leads", description="Table receiving new leads")
    dashboard_view: str = Field(default="leads_dashboard", description="Read view for the dashboard")

    @property
    def is_configured(self) -> bool:
        """Both the endpoint and the credential are present."""
        return bool((self.url or "").strip() and (self.service_key or "").strip())


class GeoSettings(BaseSettings):
    """IP geolocation enrichment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Look up geolocation for public client IPs")
    base_url: str = Field(default="http://ip-api.com", description="Geolocation service base URL")
    timeout: float = Field(default=3.5, description="Lookup timeout in seconds")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEADS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="Lead Intake", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Root log level")

    # CORS: comma separated origins, "*" makes the intake endpoint permissive
    cors_origins: str = Field(default="*", description="Allowed CORS origins")

    # Intake behaviour
    require_contact: bool = Field(
        default=True,
        description="Reject submissions without any of full_name, phone, email",
    )
    log_sample_values: bool = Field(
        default=True,
        description="Log masked samples of resolved core fields",
    )
    attribution_ttl_days: int = Field(
        default=90,
        description="Lifetime of the attribution cookie written by /wa",
    )

    # Dashboard
    dashboard_limit: int = Field(default=200, description="Default number of dashboard rows")

    # Nested settings (loaded separately)
    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def geo(self) -> GeoSettings:
        return GeoSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")

    @property
    def cors_origin_list(self) -> List[str]:
        """Parsed CORS allow-list."""
        return [o.strip().rstrip("/") for o in self.cors_origins.split(",") if o.strip()]

    @property
    def cors_permissive(self) -> bool:
        return "*" in self.cors_origin_list


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
