"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_customers_table: str = "customers"
    supabase_photo_bucket: str = "customer-photos"
    local_cache_dir: str | None = ".checkin_cache"
    warning_threshold_minutes: int = 15
    scan_interval_seconds: float = 30
    autosave_interval_seconds: float = 30
    extension_minutes: int = 30
    max_extensions: int = 3
    extension_cooldown_minutes: int = 60
    cache_retention_hours: int = 24
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
