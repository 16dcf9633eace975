"""S3Cloud API middleware package."""

from s3cloud.api.middleware.request_id import RequestIdMiddleware
from s3cloud.api.middleware.tracing import RequestTracingMiddleware

__all__ = ["RequestIdMiddleware", "RequestTracingMiddleware"]
