"""Configuration management for the docstore adapter.

Only ambient tuning lives here (pool sizing, bootstrap retry policy,
observability). The connection target and credentials come from the
benchmark property map, see ``application.settings_resolver``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PoolConfig(BaseModel):
    """Shared connection pool configuration."""

    max_size: int = Field(default=64, ge=1, le=10000, description="Max pooled sessions")
    acquire_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Acquire timeout in seconds (None blocks)"
    )


class BootstrapConfig(BaseModel):
    """Schema bootstrap retry configuration."""

    backoff_seconds: float = Field(
        default=0.1, ge=0, description="Sleep between schema creation attempts"
    )
    max_attempts: int | None = Field(
        default=100, ge=1, description="Schema creation attempts (None for unbounded)"
    )


class StorageConfig(BaseModel):
    """Embedded storage configuration."""

    dictionary_fanout: int = Field(
        default=128, ge=3, le=4096, description="Max keys per dictionary B+Tree node"
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")
    metrics_enabled: bool = Field(default=False, description="Serve Prometheus metrics")
    metrics_port: int = Field(default=8001, ge=1, le=65535, description="Prometheus metrics port")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(
        default="docstore_adapter", description="Service name for tracing"
    )


class Config(BaseSettings):
    """Main configuration for the docstore adapter."""

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    pool: PoolConfig = Field(default_factory=PoolConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()
