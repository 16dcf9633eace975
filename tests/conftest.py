"""Pytest configuration and fixtures for S3Cloud tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from s3cloud.api.main import create_app
from s3cloud.config import ServerConfig
from s3cloud.observability.tracing import (
    ENV_OTEL_ENABLED,
    ENV_OTEL_TEST_CAPTURE,
    ENV_REQUIRE_OTEL,
    clear_test_spans,
    configure_tracing,
    get_test_spans,
    reset_tracing,
)
from s3cloud.storage.catalog import CsvCatalog
from s3cloud.storage.filesystem_store import FilesystemObjectStore
from s3cloud.storage.registry import BucketRegistry

S3CLOUD_ENV_VARS = (
    "S3CLOUD_HOST",
    "S3CLOUD_PORT",
    "S3CLOUD_STORAGE_DIR",
    "S3CLOUD_MAX_OBJECT_SIZE",
    "S3CLOUD_CHUNK_SIZE",
    "S3CLOUD_LOG_LEVEL",
    ENV_OTEL_ENABLED,
    ENV_OTEL_TEST_CAPTURE,
    ENV_REQUIRE_OTEL,
)

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\r"


@pytest.fixture(autouse=True)
def clean_s3cloud_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without S3CLOUD_* settings from the outer environment."""
    for name in S3CLOUD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Storage root that does not exist yet."""
    return tmp_path / "data"


@pytest.fixture
def catalog(storage_dir: Path) -> CsvCatalog:
    return CsvCatalog(storage_dir)


@pytest.fixture
def store(storage_dir: Path) -> FilesystemObjectStore:
    return FilesystemObjectStore(storage_dir)


@pytest.fixture
def registry(catalog: CsvCatalog, store: FilesystemObjectStore) -> BucketRegistry:
    """A loaded registry over an empty storage root."""
    registry = BucketRegistry(catalog, store)
    registry.load()
    return registry


@pytest.fixture
def reload_registry(storage_dir: Path) -> Callable[[], BucketRegistry]:
    """Build a fresh registry from what is on disk, as a restart would."""

    def _reload() -> BucketRegistry:
        fresh = BucketRegistry(CsvCatalog(storage_dir), FilesystemObjectStore(storage_dir))
        fresh.load()
        return fresh

    return _reload


@pytest.fixture
def config(storage_dir: Path) -> ServerConfig:
    return ServerConfig(storage_dir=str(storage_dir))


@pytest.fixture
def client(config: ServerConfig) -> TestClient:
    """Create a test client for the S3Cloud API."""
    return TestClient(create_app(config))


@pytest.fixture
def span_capture(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[[], list]]:
    """Enable tracing with the in-memory exporter; yields a span getter."""
    monkeypatch.setenv(ENV_OTEL_ENABLED, "1")
    monkeypatch.setenv(ENV_OTEL_TEST_CAPTURE, "1")
    reset_tracing()
    configure_tracing()
    clear_test_spans()

    yield get_test_spans

    reset_tracing()
