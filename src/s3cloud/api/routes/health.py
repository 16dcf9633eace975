"""Health check endpoint for S3Cloud API.

Served under /_health: the underscore is not allowed in bucket names, so the
endpoint can never shadow a bucket.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["Health"])

S3CLOUD_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    time: str
    version: str
    buckets: int


@router.get("/_health", response_model=HealthResponse)
def get_health(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns JSON with status, time (ISO-8601), version and the number of
    buckets currently in the registry.
    """
    registry = request.app.state.registry
    return HealthResponse(
        status="ok",
        time=datetime.now(UTC).isoformat(),
        version=S3CLOUD_VERSION,
        buckets=len(registry.list_buckets()),
    )
