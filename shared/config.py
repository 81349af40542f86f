"""
Shared configuration management for the Library System.

Settings are read from ``LIBRARY_*`` environment variables or a local
``.env`` file, e.g. ``LIBRARY_POSTGRES_DSN`` or ``LIBRARY_REDIS_URL``.
"""

from typing import Annotated, List, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class BaseConfig(BaseSettings):
    """Settings shared by every Library System service."""

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    env: str = Field(default="local")
    log_level: str = Field(default="info")
    log_json: bool = Field(default=True)

    # PostgreSQL
    postgres_dsn: str = Field(default="postgres://localhost:5432/library")
    postgres_min_pool_size: int = Field(default=2, ge=1)
    postgres_max_pool_size: int = Field(default=10, ge=1)
    postgres_command_timeout: float = Field(default=30.0, gt=0)

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_key_prefix: str = Field(default="library:")

    # HTTP; a comma-separated string is accepted from the environment
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["http://localhost:5174"])

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @field_validator("cache_key_prefix")
    @classmethod
    def _prefix_separator(cls, value: str) -> str:
        if value and not value.endswith(":"):
            value = f"{value}:"
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Union[str, List[str]]) -> List[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _pool_bounds(self) -> "BaseConfig":
        if self.postgres_min_pool_size > self.postgres_max_pool_size:
            raise ValueError("postgres_min_pool_size must not exceed postgres_max_pool_size")
        return self


class ServiceConfig(BaseConfig):
    """Configuration for one service process."""

    service_name: str
    port: int
    host: str = "0.0.0.0"


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
