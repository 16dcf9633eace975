"""OpenTelemetry tracing configuration for S3Cloud.

Environment Variables:
    S3CLOUD_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    S3CLOUD_REQUIRE_OTEL: Set to "1" to fail startup if tracing cannot initialize
    S3CLOUD_OTEL_SERVICE_NAME: Service name for spans (default: "s3cloud")
    S3CLOUD_OTEL_TEST_CAPTURE: Set to "1" to use the in-memory exporter for tests

Spans are exported to the console unless test capture is enabled.
Span attributes never include absolute filesystem paths.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan

logger = logging.getLogger(__name__)

ENV_OTEL_ENABLED = "S3CLOUD_OTEL_ENABLED"
ENV_REQUIRE_OTEL = "S3CLOUD_REQUIRE_OTEL"
ENV_OTEL_SERVICE_NAME = "S3CLOUD_OTEL_SERVICE_NAME"
ENV_OTEL_TEST_CAPTURE = "S3CLOUD_OTEL_TEST_CAPTURE"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: InMemorySpanExporter | None = None


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and S3CLOUD_REQUIRE_OTEL=1."""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def is_tracing_enabled() -> bool:
    return get_env_bool(ENV_OTEL_ENABLED, False)


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing for S3Cloud.

    Idempotent - safe to call multiple times.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If S3CLOUD_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    enabled = is_tracing_enabled()
    require_otel = get_env_bool(ENV_REQUIRE_OTEL, False)
    test_capture = get_env_bool(ENV_OTEL_TEST_CAPTURE, False)

    if not enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False

    # The global TracerProvider cannot be replaced once set, so the test
    # exporter survives reset_tracing().
    if _test_exporter is not None and test_capture:
        return True

    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        service_name = os.environ.get(ENV_OTEL_SERVICE_NAME, "s3cloud").strip() or "s3cloud"
        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if test_capture:
            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        else:
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            "in-memory" if test_capture else "console",
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if require_otel:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is not None:
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear captured spans from the in-memory exporter (for testing)."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    Clears captured spans but keeps the exporter reference, since the
    global TracerProvider cannot be replaced once set.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
