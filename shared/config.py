"""
Shared configuration management for the Symptom Tracker services.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="SYMPTOMS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/symptoms")

    # PostgreSQL pool
    postgres_min_pool_size: int = Field(default=2, ge=1)
    postgres_max_pool_size: int = Field(default=10, ge=1)
    postgres_command_timeout: float = Field(default=30.0, gt=0)

    # Cache
    cache_ttl_seconds: int = Field(default=60, ge=1)

    # Insight provider (OpenAI-compatible chat completions)
    insight_api_url: str = Field(default="https://api.openai.com/v1")
    insight_api_key: Optional[str] = Field(default=None)
    insight_model: str = Field(default="gpt-4o-mini")
    insight_timeout_seconds: float = Field(default=15.0, gt=0)


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
