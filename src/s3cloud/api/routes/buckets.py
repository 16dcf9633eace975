"""Bucket routes for S3Cloud API.

- GET / (listBuckets)
- PUT /{bucket} (createBucket)
- GET /{bucket} (getBucket)
- DELETE /{bucket} (deleteBucket)

Handlers are sync functions, so FastAPI runs them on the threadpool and the
registry's blocking catalog I/O never stalls the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from s3cloud.api.deps import RegistryDep
from s3cloud.api.errors import method_not_allowed
from s3cloud.api.responses import XmlResponse, bucket_list_xml, bucket_xml
from s3cloud.api.validation import BucketName

router = APIRouter(tags=["Buckets"])

ROOT_METHODS = ("GET",)
BUCKET_METHODS = ("DELETE", "GET", "PUT")


@router.get("/", response_class=XmlResponse)
def list_buckets(registry: RegistryDep) -> XmlResponse:
    """List all buckets."""
    return XmlResponse(content=bucket_list_xml(registry.list_buckets()))


@router.put("/{bucket}", status_code=201)
def create_bucket(bucket: BucketName, registry: RegistryDep) -> Response:
    """Create an empty bucket.

    Returns 201 with a Location header pointing at the new bucket.
    """
    registry.create_bucket(bucket)
    return Response(status_code=201, headers={"Location": f"/{bucket}"})


@router.get("/{bucket}", response_class=XmlResponse)
def get_bucket(bucket: BucketName, registry: RegistryDep) -> XmlResponse:
    """Describe one bucket and list its objects."""
    return XmlResponse(content=bucket_xml(registry.get_bucket(bucket)))


@router.delete("/{bucket}", status_code=204)
def delete_bucket(bucket: BucketName, registry: RegistryDep) -> Response:
    """Delete an empty bucket."""
    registry.delete_bucket(bucket)
    return Response(status_code=204)


@router.api_route(
    "/",
    methods=["POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    include_in_schema=False,
)
def root_method_not_allowed(request: Request) -> Response:
    raise method_not_allowed(request, ROOT_METHODS)


@router.api_route(
    "/{bucket}",
    methods=["POST", "PATCH", "HEAD", "OPTIONS"],
    include_in_schema=False,
)
def bucket_method_not_allowed(request: Request) -> Response:
    raise method_not_allowed(request, BUCKET_METHODS)
