"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    flickr_api_key: str
    flickr_base_url: str = "https://api.flickr.com/services/rest/"
    flickr_search_radius_km: float = 5.0
    flickr_per_page: int = 21
    flickr_result_cap: int = 4000
    http_timeout_seconds: float = 15.0
    backfill_concurrency: int = 6
    coordinate_precision: int = 6
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def uses_supabase(self) -> bool:
        """Whether a durable Supabase store is configured."""
        return bool(self.supabase_url and self.supabase_service_key)
