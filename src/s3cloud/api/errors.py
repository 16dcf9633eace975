"""S3Cloud API error handling.

Provides ApiHttpError and the FastAPI exception handlers that turn every
per-request failure into an XML <Error> response.

Global exception handlers:
- ApiHttpError: Errors raised by routes and dependencies
- ObjectStorageError: Registry, catalog and object store failures
- HTTPException: Starlette routing errors (404 NoSuchResource, 405)
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)

Every handled failure is logged with the request method, path and cause:
4xx at WARNING, 5xx with the traceback at ERROR.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from s3cloud.api.error_model import get_error_code_for_status, make_error_response
from s3cloud.storage.errors import ErrorCategory, ObjectStorageError

logger = logging.getLogger(__name__)

_CATEGORY_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.INVALID_ARGUMENT: 400,
    ErrorCategory.CORRUPTION: 500,
    ErrorCategory.IO_FAILURE: 500,
}

_CODE_STATUS: dict[str, int] = {
    "EntityTooLarge": 413,
}

INTERNAL_ERROR_MESSAGE = "We encountered an internal error. Please try again."


class ApiHttpError(Exception):
    """Application-level HTTP error rendered as an XML error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 400, 404).
        code: S3-style error code (e.g., "InvalidBucketName").
        message: Human-readable error message.
        headers: Extra response headers.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.headers = dict(headers or {})


def method_not_allowed(request: Request, allowed: tuple[str, ...]) -> ApiHttpError:
    """Build a 405 error listing the methods the resource supports."""
    return ApiHttpError(
        405,
        "MethodNotAllowed",
        f"The method {request.method} is not allowed against this resource",
        headers={"Allow": ", ".join(allowed)},
    )


def status_for_storage_error(exc: ObjectStorageError) -> int:
    """Return the HTTP status for a storage error."""
    return _CODE_STATUS.get(exc.code, _CATEGORY_STATUS[exc.category])


def _log_failure(request: Request, status_code: int, code: str, cause: Exception) -> None:
    if status_code >= 500:
        logger.error(
            "%s %s failed: %s %s (%s)",
            request.method,
            request.url.path,
            status_code,
            code,
            cause,
            exc_info=cause,
        )
    else:
        logger.warning(
            "%s %s failed: %s %s (%s)",
            request.method,
            request.url.path,
            status_code,
            code,
            cause,
        )


async def api_http_error_handler(request: Request, exc: Exception) -> Response:
    """FastAPI exception handler for ApiHttpError."""
    assert isinstance(exc, ApiHttpError)

    _log_failure(request, exc.status_code, exc.code, exc)
    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=exc.status_code,
        headers=exc.headers,
    )


async def storage_error_handler(request: Request, exc: Exception) -> Response:
    """FastAPI exception handler for ObjectStorageError.

    Client errors keep their message. Server-side failures are reported with
    a generic message; the cause only goes to the log.
    """
    assert isinstance(exc, ObjectStorageError)

    status_code = status_for_storage_error(exc)
    _log_failure(request, status_code, exc.code, exc)

    if status_code >= 500:
        return make_error_response(
            request,
            code="InternalError",
            message=INTERNAL_ERROR_MESSAGE,
            http_status=status_code,
        )
    return make_error_response(
        request,
        code=exc.code,
        message=exc.message,
        http_status=status_code,
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """FastAPI exception handler for Starlette HTTP exceptions.

    Keeps the exception's headers so 405 responses carry Allow.
    """
    assert isinstance(exc, StarletteHTTPException)

    code = get_error_code_for_status(exc.status_code)
    if exc.status_code == 404:
        message = "The specified resource does not exist"
    elif exc.status_code == 405:
        message = f"The method {request.method} is not allowed against this resource"
    else:
        message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    _log_failure(request, exc.status_code, code, exc)
    return make_error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all exception handler for unhandled exceptions.

    Fails closed: returns 500 with a generic message and never exposes the
    exception to the client.
    """
    _log_failure(request, 500, "InternalError", exc)
    return make_error_response(
        request,
        code="InternalError",
        message=INTERNAL_ERROR_MESSAGE,
        http_status=500,
    )
