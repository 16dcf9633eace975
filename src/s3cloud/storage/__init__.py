"""S3Cloud storage layer.

Provides the bucket registry, its CSV catalogs, and payload storage:

- BucketRegistry: in-memory index of buckets and object metadata
- CsvCatalog: durable bucket and per-bucket object catalogs
- FilesystemObjectStore: one payload file per object under the storage root
"""

from s3cloud.storage.catalog import CsvCatalog
from s3cloud.storage.errors import (
    BucketAlreadyExistsError,
    BucketNotEmptyError,
    BucketNotFoundError,
    CatalogCorruptionError,
    ErrorCategory,
    IncompleteBodyError,
    ObjectNotFoundError,
    ObjectStorageError,
    ObjectTooLargeError,
    PathTraversalError,
    ProhibitedNameError,
    ProhibitedStoragePathError,
    StorageBackendError,
    UndefinedLengthError,
)
from s3cloud.storage.filesystem_store import FilesystemObjectStore
from s3cloud.storage.models import BucketRecord, ObjectRecord, StoredObject, StoredObjectMetadata
from s3cloud.storage.object_store import ObjectStore, PendingUpload
from s3cloud.storage.registry import BucketRegistry

__all__ = [
    "BucketAlreadyExistsError",
    "BucketNotEmptyError",
    "BucketNotFoundError",
    "BucketRecord",
    "BucketRegistry",
    "CatalogCorruptionError",
    "CsvCatalog",
    "ErrorCategory",
    "FilesystemObjectStore",
    "IncompleteBodyError",
    "ObjectNotFoundError",
    "ObjectRecord",
    "ObjectStorageError",
    "ObjectStore",
    "ObjectTooLargeError",
    "PathTraversalError",
    "PendingUpload",
    "ProhibitedNameError",
    "ProhibitedStoragePathError",
    "StorageBackendError",
    "StoredObject",
    "StoredObjectMetadata",
    "UndefinedLengthError",
]
