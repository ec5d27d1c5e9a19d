"""
Shared configuration management for the Collection Browser.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Session cache
    cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    session_ttl_seconds: Optional[int] = Field(default=1800)
    session_cookie_name: str = Field(default="browser_session")
    serialize_session_requests: bool = Field(default=True)

    # Remote listing service
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "BROWSER_OPENAI_API_KEY"),
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    request_timeout_seconds: float = Field(default=10.0)

    # Paging
    assistants_page_size: int = Field(default=20)
    fine_tuning_page_size: int = Field(default=10)
    max_page_size: int = Field(default=100)


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
