"""Object routes for S3Cloud API.

- PUT /{bucket}/{key} (putObject)
- GET /{bucket}/{key} (getObject)
- HEAD /{bucket}/{key} (headObject)
- DELETE /{bucket}/{key} (deleteObject)

Uploads stream the request body into the object store chunk by chunk, so an
object is never held in memory as a whole. The body is read on the event
loop and every blocking write runs on the threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from s3cloud.api.deps import ObjectStoreDep, RegistryDep
from s3cloud.api.errors import method_not_allowed
from s3cloud.api.responses import http_date
from s3cloud.api.validation import BucketName, ObjectKey
from s3cloud.storage.errors import ObjectNotFoundError

router = APIRouter(tags=["Objects"])

OBJECT_METHODS = ("DELETE", "GET", "HEAD", "PUT")


def _declared_length(request: Request) -> int | None:
    """Return the Content-Length of the request, or None if it is unusable."""
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        length = int(raw)
    except ValueError:
        return None
    return length if length >= 0 else None


def _object_headers(size: int, last_modified: str) -> dict[str, str]:
    return {
        "Content-Length": str(size),
        "Last-Modified": http_date(last_modified),
    }


@router.put("/{bucket}/{key}")
async def put_object(
    request: Request,
    bucket: BucketName,
    key: ObjectKey,
    registry: RegistryDep,
    object_store: ObjectStoreDep,
) -> Response:
    """Upload an object, replacing any existing object with the same key.

    The Content-Length header is required and checked against the size
    limit before any byte of the body is read. Without a Content-Type header
    the type is sniffed from the payload.

    Returns 201 for a new key and 200 when an existing object was replaced.
    """
    declared_length = _declared_length(request)
    content_type = (request.headers.get("content-type") or "").strip() or None

    upload = await run_in_threadpool(
        object_store.open_upload,
        bucket,
        key,
        declared_length,
        content_type=content_type,
    )
    try:
        await run_in_threadpool(registry.get_bucket, bucket)
        async for chunk in request.stream():
            await run_in_threadpool(upload.write, chunk)
        _, replaced = await run_in_threadpool(registry.commit_upload, upload)
    finally:
        if not upload.committed:
            await run_in_threadpool(upload.abort)

    return Response(
        status_code=200 if replaced else 201,
        headers={"Location": f"/{bucket}/{key}"},
    )


@router.get("/{bucket}/{key}")
def get_object(
    bucket: BucketName,
    key: ObjectKey,
    registry: RegistryDep,
    object_store: ObjectStoreDep,
) -> StreamingResponse:
    """Stream an object's payload.

    Length, type and modification time are sent before the body. The type
    is the one recorded at upload.
    """
    record = registry.get_object(bucket, key)
    stored = object_store.get(bucket, key)
    return StreamingResponse(
        stored.chunks,
        media_type=record.content_type or stored.content_type,
        headers=_object_headers(stored.size_bytes, record.last_modified),
    )


@router.head("/{bucket}/{key}")
def head_object(
    bucket: BucketName,
    key: ObjectKey,
    registry: RegistryDep,
    object_store: ObjectStoreDep,
) -> Response:
    """Return an object's headers without its payload."""
    record = registry.get_object(bucket, key)
    size = object_store.size_of(bucket, key)
    if size is None:
        raise ObjectNotFoundError(bucket=bucket, key=key)
    return Response(
        status_code=200,
        media_type=record.content_type,
        headers=_object_headers(size, record.last_modified),
    )


@router.delete("/{bucket}/{key}", status_code=204)
def delete_object(bucket: BucketName, key: ObjectKey, registry: RegistryDep) -> Response:
    """Delete an object and its payload."""
    registry.remove_object(bucket, key)
    return Response(status_code=204)


@router.api_route(
    "/{bucket}/{key}",
    methods=["POST", "PATCH", "OPTIONS"],
    include_in_schema=False,
)
def object_method_not_allowed(request: Request) -> Response:
    raise method_not_allowed(request, OBJECT_METHODS)
