"""Tests for S3Cloud OpenTelemetry tracing.

- Tracing OFF by default, ON via S3CLOUD_OTEL_ENABLED=1
- Fail-closed only when S3CLOUD_REQUIRE_OTEL=1 and init fails
- Request spans carry the request id; object store spans (including uploads)
  nest under them
- Tests use the in-memory exporter (no external collector required)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from opentelemetry.trace import SpanKind, StatusCode

from s3cloud.api.main import create_app
from s3cloud.config import ServerConfig
from s3cloud.observability import tracing
from s3cloud.observability.tracing import (
    ENV_OTEL_ENABLED,
    ENV_OTEL_TEST_CAPTURE,
    ENV_REQUIRE_OTEL,
    TracingConfigError,
    configure_tracing,
    get_env_bool,
    reset_tracing,
)
from s3cloud.storage.errors import IncompleteBodyError


@pytest.fixture(autouse=True)
def fresh_tracing() -> Iterator[None]:
    reset_tracing()
    yield
    reset_tracing()


class TestTracingConfiguration:
    """Tests for tracing configuration behavior."""

    def test_tracing_disabled_by_default(self) -> None:
        """Tracing should be OFF when S3CLOUD_OTEL_ENABLED is not set."""
        assert configure_tracing() is False
        assert tracing.is_tracing_enabled() is False

    def test_tracing_enabled_with_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_OTEL_ENABLED, "1")
        monkeypatch.setenv(ENV_OTEL_TEST_CAPTURE, "1")

        assert configure_tracing() is True

    def test_tracing_idempotent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_OTEL_ENABLED, "1")
        monkeypatch.setenv(ENV_OTEL_TEST_CAPTURE, "1")

        assert configure_tracing() == configure_tracing()

    def test_require_otel_fails_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """S3CLOUD_REQUIRE_OTEL=1 should fail startup if tracing init fails."""
        monkeypatch.setenv(ENV_OTEL_ENABLED, "1")
        monkeypatch.setenv(ENV_REQUIRE_OTEL, "1")

        with patch(
            "s3cloud.observability.tracing.TracerProvider",
            side_effect=Exception("Simulated init failure"),
        ):
            with pytest.raises(TracingConfigError) as exc_info:
                configure_tracing()

        assert "configuration failed" in str(exc_info.value).lower()

    def test_init_failure_without_require_is_tolerated(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv(ENV_OTEL_ENABLED, "1")

        with patch(
            "s3cloud.observability.tracing.TracerProvider",
            side_effect=Exception("Simulated init failure"),
        ):
            assert configure_tracing() is False

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("true", True), ("YES", True), ("0", False), ("maybe", False)],
    )
    def test_env_bool(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        monkeypatch.setenv("S3CLOUD_TEST_FLAG", raw)

        assert get_env_bool("S3CLOUD_TEST_FLAG") is expected


class TestRequestSpans:
    """Request spans and their storage children."""

    def test_get_object_nests_store_span_under_request(
        self, span_capture: Callable[[], list], config: ServerConfig
    ) -> None:
        client = TestClient(create_app(config))
        client.put("/photos")
        client.put("/photos/a.txt", content=b"abc")

        client.get("/photos/a.txt", headers={"X-Request-Id": "req-get-1"})

        spans = span_capture()
        request_spans = [
            s
            for s in spans
            if s.name == "s3cloud.http.request"
            and (s.attributes or {}).get("s3cloud.request_id") == "req-get-1"
        ]
        assert len(request_spans) == 1
        request_span = request_spans[0]
        assert request_span.kind == SpanKind.SERVER

        store_spans = [s for s in spans if s.name == "s3cloud.object_store.get"]
        assert store_spans
        assert store_spans[-1].parent is not None
        assert store_spans[-1].parent.span_id == request_span.context.span_id

    def test_put_object_nests_store_span_under_request(
        self, span_capture: Callable[[], list], config: ServerConfig
    ) -> None:
        client = TestClient(create_app(config))
        client.put("/photos")

        response = client.put(
            "/photos/a.txt", content=b"hello", headers={"X-Request-Id": "req-put-1"}
        )

        assert response.status_code == 201
        spans = span_capture()
        request_span = next(
            s
            for s in spans
            if s.name == "s3cloud.http.request"
            and (s.attributes or {}).get("s3cloud.request_id") == "req-put-1"
        )
        store_spans = [s for s in spans if s.name == "s3cloud.object_store.put"]
        assert len(store_spans) == 1
        store_span = store_spans[0]
        assert store_span.parent is not None
        assert store_span.parent.span_id == request_span.context.span_id
        assert store_span.attributes["s3cloud.bucket"] == "photos"
        assert store_span.attributes["s3cloud.object_key"] == "a.txt"
        assert store_span.attributes["s3cloud.object_size_bytes"] == 5
        assert store_span.attributes["storage.backend"] == "filesystem"

    def test_incomplete_upload_marks_store_span(
        self, span_capture: Callable[[], list], config: ServerConfig
    ) -> None:
        app = create_app(config)
        registry = app.state.registry
        registry.create_bucket("photos")
        upload = app.state.object_store.open_upload("photos", "a.txt", 10)
        upload.write(b"short")

        with upload, pytest.raises(IncompleteBodyError):
            registry.commit_upload(upload)

        (store_span,) = [s for s in span_capture() if s.name == "s3cloud.object_store.put"]
        assert store_span.attributes["error"] is True
        assert store_span.attributes["error.type"] == "IncompleteBodyError"

    def test_server_errors_mark_span(
        self,
        span_capture: Callable[[], list],
        config: ServerConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        app = create_app(config)

        def explode() -> list:
            raise RuntimeError("boom")

        monkeypatch.setattr(app.state.registry, "list_buckets", explode)
        client = TestClient(app, raise_server_exceptions=False)

        assert client.get("/").status_code == 500

        spans = [s for s in span_capture() if s.name == "s3cloud.http.request"]
        assert spans
        assert spans[-1].status.status_code == StatusCode.ERROR

    def test_client_errors_do_not_mark_span(
        self, span_capture: Callable[[], list], config: ServerConfig
    ) -> None:
        client = TestClient(create_app(config))

        client.get("/ghost")

        spans = [s for s in span_capture() if s.name == "s3cloud.http.request"]
        assert spans
        assert spans[-1].attributes["http.response.status_code"] == 404
        assert spans[-1].status.status_code != StatusCode.ERROR
