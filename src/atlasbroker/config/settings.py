"""
Application settings using Pydantic.

Provides environment-based configuration loading with ATLAS_BROKER_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ATLAS_BROKER_",
    )

    # Atlas admin API
    atlas_base_url: str = "https://cloud.mongodb.com/api/atlas/v1.0"
    user_agent: str = "atlas-broker/0.1.0"

    # Catalog
    template_dir: str = "templates"
    service_id: str = "aosb-cluster-service-template"
    service_name: str = "mongodb-atlas-template"
    service_description: str = "MongoDB Atlas plan templates"

    # Credentials: either a JSON blob or a YAML/JSON credentials file
    api_keys: str | None = None
    credentials_file: str | None = None

    # Instance state
    state_backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10
    state_key_prefix: str = "atlas-broker:instance"
    instance_lock_ttl: int = 30

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3

    # Resolution
    resolve_timeout: float = 60.0
    strict_reconcile: bool = True

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
