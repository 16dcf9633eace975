"""S3Cloud FastAPI application factory.

This module provides the create_app() factory for bootstrapping the S3Cloud
API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from s3cloud.api.errors import (
    ApiHttpError,
    api_http_error_handler,
    generic_exception_handler,
    http_exception_handler,
    storage_error_handler,
)
from s3cloud.api.middleware.request_id import RequestIdMiddleware
from s3cloud.api.middleware.tracing import RequestTracingMiddleware
from s3cloud.api.routes.buckets import router as buckets_router
from s3cloud.api.routes.health import S3CLOUD_VERSION
from s3cloud.api.routes.health import router as health_router
from s3cloud.api.routes.objects import router as objects_router
from s3cloud.config import ServerConfig
from s3cloud.observability.tracing import configure_tracing
from s3cloud.storage.catalog import CsvCatalog
from s3cloud.storage.errors import ObjectStorageError
from s3cloud.storage.filesystem_store import FilesystemObjectStore
from s3cloud.storage.object_store import ObjectStore
from s3cloud.storage.registry import BucketRegistry

logger = logging.getLogger(__name__)


def build_registry(
    config: ServerConfig, object_store: ObjectStore | None = None
) -> tuple[BucketRegistry, ObjectStore]:
    """Build and load the registry for a storage root.

    Args:
        config: Server configuration naming the storage root and limits.
        object_store: Optional payload store for testing. If None, a
            FilesystemObjectStore on the storage root is used.

    Returns:
        The loaded registry and the object store it was reconciled against.

    Raises:
        ProhibitedStoragePathError: If the storage root is on the deny-list.
        CatalogCorruptionError: If a catalog cannot be parsed.
        StorageBackendError: If the storage root cannot be read or created.
    """
    catalog = CsvCatalog(config.storage_dir)
    if object_store is None:
        object_store = FilesystemObjectStore(
            catalog.root,
            max_object_size=config.max_object_size,
            chunk_size=config.chunk_size,
        )
    registry = BucketRegistry(catalog, object_store)
    registry.load()
    return registry, object_store


def create_app(
    config: ServerConfig | None = None,
    registry: BucketRegistry | None = None,
    object_store: ObjectStore | None = None,
) -> FastAPI:
    """Create and configure the S3Cloud FastAPI application.

    This factory:
    - Loads the registry eagerly, so a corrupt catalog fails startup
    - Registers middleware in correct order for request processing
    - Registers the exception handlers that render XML errors
    - Mounts the health, bucket and object routers

    Middleware ordering (outermost to innermost):
    1. RequestIdMiddleware - outermost, ensures request_id available everywhere
    2. RequestTracingMiddleware - one span per request, tagged with request_id

    Args:
        config: Server configuration. If None, defaults are used.
        registry: Optional pre-built registry for testing. Must be loaded
            and share its object store with object_store.
        object_store: Optional payload store for testing.

    Returns:
        Configured FastAPI application instance.

    Raises:
        ObjectStorageError: If the registry cannot be loaded.
    """
    if config is None:
        config = ServerConfig()

    if registry is None:
        registry, object_store = build_registry(config, object_store)
    elif object_store is None:
        raise ValueError("object_store is required when registry is given")

    app = FastAPI(
        title="S3Cloud",
        description="Minimal S3-style object storage server",
        version=S3CLOUD_VERSION,
    )

    app.state.config = config
    app.state.registry = registry
    app.state.object_store = object_store

    configure_tracing()

    app.add_middleware(RequestTracingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(ApiHttpError, api_http_error_handler)
    app.add_exception_handler(ObjectStorageError, storage_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(buckets_router)
    app.include_router(objects_router)

    logger.info("S3Cloud app created: storage_dir=%s", registry.catalog.root)
    return app
