"""Configuration system for Storage Gateway.

Loads configuration from:
1. JSON file specified by STORAGE_GATEWAY_CONFIG env var
2. Environment variable overrides with STORAGE_GATEWAY_ prefix
   - Nested keys use double underscore: STORAGE_GATEWAY_KV__MAX_LIST_PAGES
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KVBackendType(str, Enum):
    """Supported key-value backends."""

    MEMORY = "memory"
    REDIS = "redis"


class DatabaseConfig(BaseSettings):
    """Configuration for the relational store (DuckDB)."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_DATABASE__",
        env_nested_delimiter="__",
    )

    path: str = Field(default=":memory:", description="DuckDB database file, or :memory:")
    memory_limit: str = Field(
        default="1GB", description="DuckDB memory limit (e.g., '4GB', '512MB')"
    )
    threads: int = Field(default=4, ge=1, description="Number of DuckDB threads")


class KVConfig(BaseSettings):
    """Configuration for key-value namespaces."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_KV__",
        env_nested_delimiter="__",
    )

    backend: KVBackendType = KVBackendType.MEMORY
    namespaces: list[str] = Field(
        default_factory=lambda: ["default"],
        description="Names of the key-value namespaces exposed under /KV",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    key_prefix: str = Field(
        default="kv", description="Prefix for Redis keys, joined as <prefix>:<namespace>:<key>"
    )
    list_page_size: int = Field(
        default=1000, ge=1, le=10000, description="Keys requested per listing page"
    )
    max_list_pages: int = Field(
        default=1000, ge=1, description="Maximum listing pages read when enumerating keys"
    )


class ApiConfig(BaseSettings):
    """Configuration for the REST surface."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_API__",
        env_nested_delimiter="__",
    )

    prefix: str = Field(
        default="rest", description="Path prefix of REST routes, one or more segments"
    )


class ServerConfig(BaseSettings):
    """Configuration for the HTTP server."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_SERVER__",
        env_nested_delimiter="__",
    )

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Server port")


class OTelConfig(BaseSettings):
    """Configuration for OpenTelemetry."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_OTEL__",
        env_nested_delimiter="__",
    )

    enabled: bool = Field(default=False, description="Enable OpenTelemetry instrumentation")
    endpoint: str = Field(
        default="http://localhost:4317", description="OTLP exporter endpoint"
    )
    insecure: bool = Field(default=True, description="Use an insecure OTLP channel")
    service_name: str = Field(default="storage-gateway", description="Service name for traces")


class Settings(BaseSettings):
    """Root configuration for Storage Gateway."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_GATEWAY_",
        env_nested_delimiter="__",
        env_file=None,
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    kv: KVConfig = Field(default_factory=KVConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    otel: OTelConfig = Field(default_factory=OTelConfig)

    @model_validator(mode="before")
    @classmethod
    def load_from_json_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Load configuration from JSON file if STORAGE_GATEWAY_CONFIG is set."""
        import os

        config_path = os.environ.get("STORAGE_GATEWAY_CONFIG")
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ValueError(f"Config file not found: {config_path}")
            with path.open() as f:
                file_config = json.load(f)
            for key, value in file_config.items():
                if key not in data:
                    data[key] = value
                elif isinstance(value, dict) and isinstance(data.get(key), dict):
                    data[key] = {**value, **data[key]}
        return data


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings, optionally from a specific config file.

    Args:
        config_path: Path to JSON config file. If None, uses STORAGE_GATEWAY_CONFIG env var.

    Returns:
        Loaded Settings instance.
    """
    import os

    if config_path is not None:
        os.environ["STORAGE_GATEWAY_CONFIG"] = str(config_path)

    global _settings
    _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset cached settings (useful for testing)."""
    global _settings
    _settings = None
