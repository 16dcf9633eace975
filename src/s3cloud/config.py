"""Server configuration for S3Cloud.

Values come from environment variables and can be overridden by CLI flags:

    S3CLOUD_HOST: Interface to bind (default: 127.0.0.1)
    S3CLOUD_PORT: Listening port (default: 4000)
    S3CLOUD_STORAGE_DIR: Storage root directory (default: data)
    S3CLOUD_MAX_OBJECT_SIZE: Largest accepted object in bytes (default: 1 GiB)
    S3CLOUD_CHUNK_SIZE: Streaming chunk size in bytes (default: 64 KiB)
    S3CLOUD_LOG_LEVEL: Logging level name (default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Final

from s3cloud.storage.object_store import DEFAULT_CHUNK_SIZE, MAX_OBJECT_SIZE

ENV_HOST: Final[str] = "S3CLOUD_HOST"
ENV_PORT: Final[str] = "S3CLOUD_PORT"
ENV_STORAGE_DIR: Final[str] = "S3CLOUD_STORAGE_DIR"
ENV_MAX_OBJECT_SIZE: Final[str] = "S3CLOUD_MAX_OBJECT_SIZE"
ENV_CHUNK_SIZE: Final[str] = "S3CLOUD_CHUNK_SIZE"
ENV_LOG_LEVEL: Final[str] = "S3CLOUD_LOG_LEVEL"

DEFAULT_HOST: Final[str] = "127.0.0.1"
DEFAULT_PORT: Final[int] = 4000
DEFAULT_STORAGE_DIR: Final[str] = "data"
DEFAULT_LOG_LEVEL: Final[str] = "INFO"

MAX_PORT: Final[int] = 65535
_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


class ConfigError(Exception):
    """Raised when server configuration is invalid."""


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration (immutable).

    Attributes:
        host: Interface to bind.
        port: Listening port; 0 is prohibited.
        storage_dir: Storage root holding catalogs and payloads.
        max_object_size: Largest accepted object in bytes.
        chunk_size: Read size used when streaming payloads.
        log_level: Logging level name.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    storage_dir: str = DEFAULT_STORAGE_DIR
    max_object_size: int = MAX_OBJECT_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 1 <= self.port <= MAX_PORT:
            raise ConfigError(f"port must be between 1 and {MAX_PORT}, got {self.port}")
        if not self.storage_dir.strip():
            raise ConfigError("storage_dir must not be empty")
        if self.max_object_size <= 0:
            raise ConfigError(
                f"max_object_size must be a positive integer, got {self.max_object_size}"
            )
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be a positive integer, got {self.chunk_size}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {sorted(_LOG_LEVELS)}, got '{self.log_level}'"
            )

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    def with_overrides(self, **overrides: Any) -> ServerConfig:
        """Return a copy with the non-None overrides applied."""
        values = {name: value for name, value in overrides.items() if value is not None}
        return replace(self, **values)


def _parse_int(env_var: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Raises:
        ConfigError: If the value is set but not an integer.
    """
    raw = os.environ.get(env_var)
    if raw is None:
        return default

    raw = raw.strip()
    if not raw:
        return default

    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{env_var} must be an integer, got '{raw}'") from e


def _parse_str(env_var: str, default: str) -> str:
    raw = os.environ.get(env_var, "").strip()
    return raw or default


def load_server_config() -> ServerConfig:
    """Load server configuration from environment variables.

    Returns:
        ServerConfig with validated values.

    Raises:
        ConfigError: If any value is invalid.
    """
    return ServerConfig(
        host=_parse_str(ENV_HOST, DEFAULT_HOST),
        port=_parse_int(ENV_PORT, DEFAULT_PORT),
        storage_dir=_parse_str(ENV_STORAGE_DIR, DEFAULT_STORAGE_DIR),
        max_object_size=_parse_int(ENV_MAX_OBJECT_SIZE, MAX_OBJECT_SIZE),
        chunk_size=_parse_int(ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE),
        log_level=_parse_str(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
    )
