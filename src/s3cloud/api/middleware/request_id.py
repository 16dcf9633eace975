"""Request ID middleware for S3Cloud API.

Every response carries an X-Request-Id header, and every XML error body
repeats it in <RequestId>. A client-supplied ID is reused when it is short
and made of token characters; anything else is replaced with a uuid4.
"""

import re
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128

_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]+")


def resolve_request_id(incoming: str | None) -> str:
    """Return the client's request ID if it is usable, otherwise a new uuid4."""
    candidate = (incoming or "").strip()
    if len(candidate) <= MAX_REQUEST_ID_LENGTH and _REQUEST_ID_PATTERN.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach request.state.request_id and echo it in the response header."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        return response
