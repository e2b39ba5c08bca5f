"""Configuration loading and Pydantic models for LocalS3."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server binding and runtime configuration."""

    host: str = "0.0.0.0"
    port: int = 8082
    log_level: str = "INFO"
    log_format: str = "text"


class StorageConfig(BaseModel):
    """Storage root configuration."""

    root: str = "./data/buckets"


class ObservabilityConfig(BaseModel):
    """Metrics configuration.

    ``/metrics`` shadows an object key named ``metrics`` while enabled, so
    it is off by default.
    """

    metrics: bool = False


class LocalS3Config(BaseModel):
    """Top-level LocalS3 configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _parse_server(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the server section from YAML data into a dict for Pydantic."""
    if data is None:
        return {}
    return {
        "host": data.get("host", "0.0.0.0"),
        "port": data.get("port", 8082),
        "log_level": data.get("log_level", "INFO"),
        "log_format": data.get("log_format", "text"),
    }


def _parse_storage(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the storage section from YAML data."""
    if data is None:
        return {}
    return {"root": str(data.get("root", "./data/buckets"))}


def _parse_observability(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the observability section from YAML data."""
    if data is None:
        return {}
    return {"metrics": data.get("metrics", False)}


def load_config(path: Path) -> LocalS3Config:
    """Load a LocalS3Config from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated LocalS3Config validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return LocalS3Config(
        server=ServerConfig(**_parse_server(raw.get("server"))),
        storage=StorageConfig(**_parse_storage(raw.get("storage"))),
        observability=ObservabilityConfig(**_parse_observability(raw.get("observability"))),
    )
