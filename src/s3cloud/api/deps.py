"""FastAPI dependencies resolving the storage components owned by the app.

create_app() places the registry and object store on app.state; routes
receive them through these dependencies instead of module globals.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from s3cloud.storage.object_store import ObjectStore
from s3cloud.storage.registry import BucketRegistry


def get_registry(request: Request) -> BucketRegistry:
    registry: BucketRegistry = request.app.state.registry
    return registry


def get_object_store(request: Request) -> ObjectStore:
    object_store: ObjectStore = request.app.state.object_store
    return object_store


RegistryDep = Annotated[BucketRegistry, Depends(get_registry)]
ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]
