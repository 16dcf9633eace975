"""Tests for server configuration loading."""

from __future__ import annotations

import pytest

from s3cloud.config import (
    DEFAULT_PORT,
    ENV_CHUNK_SIZE,
    ENV_HOST,
    ENV_LOG_LEVEL,
    ENV_MAX_OBJECT_SIZE,
    ENV_PORT,
    ENV_STORAGE_DIR,
    ConfigError,
    ServerConfig,
    load_server_config,
)
from s3cloud.storage.object_store import DEFAULT_CHUNK_SIZE, MAX_OBJECT_SIZE


class TestDefaults:
    def test_defaults_without_environment(self) -> None:
        config = load_server_config()

        assert config.host == "127.0.0.1"
        assert config.port == DEFAULT_PORT == 4000
        assert config.storage_dir == "data"
        assert config.max_object_size == MAX_OBJECT_SIZE == 1 << 30
        assert config.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.log_level == "INFO"

    def test_blank_values_fall_back_to_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_PORT, "  ")
        monkeypatch.setenv(ENV_STORAGE_DIR, "")

        config = load_server_config()

        assert config.port == DEFAULT_PORT
        assert config.storage_dir == "data"


class TestEnvironment:
    def test_values_are_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_HOST, "0.0.0.0")
        monkeypatch.setenv(ENV_PORT, "9000")
        monkeypatch.setenv(ENV_STORAGE_DIR, "/srv/s3cloud")
        monkeypatch.setenv(ENV_MAX_OBJECT_SIZE, "1024")
        monkeypatch.setenv(ENV_CHUNK_SIZE, "512")
        monkeypatch.setenv(ENV_LOG_LEVEL, "debug")

        config = load_server_config()

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.storage_dir == "/srv/s3cloud"
        assert config.max_object_size == 1024
        assert config.chunk_size == 512
        assert config.log_level_value == 10

    def test_non_integer_port(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_PORT, "eighty")

        with pytest.raises(ConfigError, match=ENV_PORT):
            load_server_config()


class TestValidation:
    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_port_out_of_range(self, port: int) -> None:
        with pytest.raises(ConfigError, match="port"):
            ServerConfig(port=port)

    def test_non_positive_sizes(self) -> None:
        with pytest.raises(ConfigError, match="max_object_size"):
            ServerConfig(max_object_size=0)
        with pytest.raises(ConfigError, match="chunk_size"):
            ServerConfig(chunk_size=0)

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ConfigError, match="log_level"):
            ServerConfig(log_level="chatty")

    def test_empty_storage_dir(self) -> None:
        with pytest.raises(ConfigError, match="storage_dir"):
            ServerConfig(storage_dir=" ")


class TestOverrides:
    def test_none_overrides_are_ignored(self) -> None:
        base = ServerConfig(port=9000)

        assert base.with_overrides(port=None, host=None) == base

    def test_overrides_apply(self) -> None:
        config = ServerConfig().with_overrides(port=4100, storage_dir="/tmp/x")

        assert config.port == 4100
        assert config.storage_dir == "/tmp/x"

    def test_overrides_are_validated(self) -> None:
        with pytest.raises(ConfigError):
            ServerConfig().with_overrides(port=0)
