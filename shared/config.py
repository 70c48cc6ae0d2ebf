"""
Shared configuration management for the Billing Versions Gateway.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="VERSIONS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Key/value storage
    cache_backend: Literal["redis", "memory"] = Field(default="redis")
    redis_url: str = Field(default="redis://localhost:6379/0")
    auth_redis_url: str = Field(default="redis://localhost:6379/1")

    # Upstream release feed
    github_api_url: str = Field(default="https://api.github.com")
    github_owner: str = Field(default="FOSSBilling")
    github_repo: str = Field(default="FOSSBilling")
    github_token: str = Field(default="")
    upstream_timeout: float = Field(default=10.0)
    releases_per_page: int = Field(default=100)
    release_asset_name: str = Field(default="FOSSBilling.zip")

    # Minimum runtime lookup
    manifest_threshold_version: str = Field(default="0.5.0")
    manifest_path: str = Field(default="composer.json")
    legacy_manifest_path: str = Field(default="src/composer.json")
    runtime_dependency: str = Field(default="php")
    metadata_concurrency: int = Field(default=10)

    # Release snapshot cache
    release_cache_key: str = Field(default="gh-fossbilling-releases")
    release_cache_ttl: int = Field(default=86400)

    # Security
    update_token_key: str = Field(default="UPDATE_TOKEN")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
