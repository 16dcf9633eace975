"""S3Cloud observability helpers (OpenTelemetry tracing)."""

from s3cloud.observability.tracing import (
    TracingConfigError,
    clear_test_spans,
    configure_tracing,
    get_test_spans,
    reset_tracing,
)

__all__ = [
    "TracingConfigError",
    "clear_test_spans",
    "configure_tracing",
    "get_test_spans",
    "reset_tracing",
]
