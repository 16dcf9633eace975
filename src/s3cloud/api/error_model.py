"""Shared error response builder for S3Cloud API.

Every error response, whether raised by a route, a storage call or the
router itself, goes through make_error_response() so clients always get
the same XML envelope:

    <Error>
      <Code>NoSuchBucket</Code>
      <Message>The specified bucket does not exist</Message>
      <Resource>/photos</Resource>
      <RequestId>...</RequestId>
    </Error>
"""

from __future__ import annotations

from collections.abc import Mapping

from fastapi import Request

from s3cloud.api.middleware.request_id import REQUEST_ID_HEADER, resolve_request_id
from s3cloud.api.responses import XmlResponse, error_xml

_STATUS_CODES: dict[int, str] = {
    400: "InvalidRequest",
    404: "NoSuchResource",
    405: "MethodNotAllowed",
    409: "Conflict",
    411: "MissingContentLength",
    413: "EntityTooLarge",
    500: "InternalError",
}


def get_error_code_for_status(status_code: int) -> str:
    """Map an HTTP status to an S3-style error code."""
    code = _STATUS_CODES.get(status_code)
    if code is not None:
        return code
    return "InvalidRequest" if status_code < 500 else "InternalError"


def get_request_id(request: Request) -> str:
    """Return the request ID set by RequestIdMiddleware.

    Errors raised outside the middleware (e.g. by ServerErrorMiddleware)
    resolve the header the same way the middleware would.
    """
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is not None:
        return str(request_id)
    return resolve_request_id(request.headers.get(REQUEST_ID_HEADER))


def make_error_response(
    request: Request,
    *,
    code: str,
    message: str,
    http_status: int,
    headers: Mapping[str, str] | None = None,
) -> XmlResponse:
    """Build an XML error response.

    Args:
        request: The incoming request (for the resource path and request_id).
        code: Machine-readable error code (e.g., "NoSuchKey").
        message: Human-readable error message.
        http_status: HTTP status code.
        headers: Extra response headers, e.g. Allow on 405.

    Returns:
        XmlResponse with the error envelope and X-Request-Id header.
    """
    request_id = get_request_id(request)
    body = error_xml(
        code=code,
        message=message,
        resource=request.url.path,
        request_id=request_id,
    )
    response = XmlResponse(content=body, status_code=http_status, headers=dict(headers or {}))
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
