"""
Shared configuration management for the CEP Geocoding Service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GEO_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Key-value store
    store_backend: str = Field(default="redis", description="redis or memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_connect_timeout: float = Field(default=5.0)
    redis_socket_timeout: float = Field(default=3.0)
    cache_ttl_seconds: int = Field(default=86400, gt=0)

    # Postal lookup provider
    viacep_url: str = Field(default="https://viacep.com.br/ws")
    viacep_timeout: float = Field(default=5.0)

    # Geocoder provider
    google_maps_url: str = Field(default="https://maps.googleapis.com/maps/api/geocode")
    google_maps_api_key: Optional[str] = Field(default=None)
    google_maps_timeout: float = Field(default=8.0)

    # Provider retry policy
    provider_max_retries: int = Field(default=3, ge=0)
    provider_retry_base_delay: float = Field(default=1.0, ge=0)

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Build configuration for a specific service.

    Called once at process start; the result is passed to every component.
    """
    return ServiceConfig(service_name=service_name, port=port, **overrides)
