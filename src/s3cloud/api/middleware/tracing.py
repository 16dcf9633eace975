"""OpenTelemetry request span middleware for S3Cloud API.

Opens one server span per request when tracing is enabled, so object store
spans created while handling the request become its children.

Attributes:
- http.request.method
- url.path
- http.response.status_code
- s3cloud.request_id (from RequestIdMiddleware)

Request and response bodies are never recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from s3cloud.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Wrap each request in an ``s3cloud.http.request`` span.

    Must be added before RequestIdMiddleware (so it runs inside it) to see
    the request ID.
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not is_tracing_enabled():
            return await call_next(request)

        tracer = trace.get_tracer("s3cloud.api")
        with tracer.start_as_current_span("s3cloud.http.request", kind=SpanKind.SERVER) as span:
            span.set_attribute("http.request.method", request.method)
            span.set_attribute("url.path", request.url.path)
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                span.set_attribute("s3cloud.request_id", str(request_id))

            response = await call_next(request)

            span.set_attribute("http.response.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR))
            return response
