"""OpenTelemetry tracing for object store operations.

Spans carry the bucket, key, backend and payload size. They never carry
absolute filesystem paths or payload bytes.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar, cast

from opentelemetry import trace

from s3cloud.observability.tracing import is_tracing_enabled
from s3cloud.storage.models import StoredObject, StoredObjectMetadata

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def storage_span(
    operation: str, bucket: str, key: str, backend: str
) -> Iterator[trace.Span | None]:
    """Open an object store span, or yield None when tracing is disabled.

    Exceptions raised inside the block mark the span with the error type
    and propagate unchanged.
    """
    if not is_tracing_enabled():
        yield None
        return

    tracer = trace.get_tracer("s3cloud.object_store")
    with tracer.start_as_current_span(f"s3cloud.object_store.{operation}") as span:
        span.set_attribute("s3cloud.bucket", bucket)
        span.set_attribute("s3cloud.object_key", key)
        span.set_attribute("storage.backend", backend)
        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            raise


def record_payload(span: trace.Span | None, result: object) -> None:
    """Attach payload size and type to a span opened by storage_span."""
    if span is not None and isinstance(result, (StoredObject, StoredObjectMetadata)):
        span.set_attribute("s3cloud.object_size_bytes", result.size_bytes)
        span.set_attribute("s3cloud.object_content_type", result.content_type)


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace object store operations with OpenTelemetry.

    Args:
        operation: Operation name (e.g., "put", "get", "delete").

    Returns:
        Decorated method that emits a span when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, bucket: str, key: str, *args: Any, **kwargs: Any) -> Any:
            backend = getattr(self, "backend_name", "unknown")
            with storage_span(operation, bucket, key, backend) as span:
                result = func(self, bucket, key, *args, **kwargs)
                record_payload(span, result)
                return result

        return cast(F, wrapper)

    return decorator
