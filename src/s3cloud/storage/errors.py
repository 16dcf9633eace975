"""S3Cloud storage error types.

Every storage failure is an ObjectStorageError subclass carrying a stable
machine-readable code and an ErrorCategory. The API layer maps categories
to HTTP status codes; the CLI treats CORRUPTION and startup IO_FAILURE as
fatal.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Error taxonomy shared by the registry, catalog and object store."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_ARGUMENT = "invalid_argument"
    CORRUPTION = "corruption"
    IO_FAILURE = "io_failure"


class ObjectStorageError(Exception):
    """Base exception for storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket name associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    code = "InternalError"
    category = ErrorCategory.IO_FAILURE

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class BucketNotFoundError(ObjectStorageError):
    """Raised when the addressed bucket is not in the registry."""

    code = "NoSuchBucket"
    category = ErrorCategory.NOT_FOUND

    def __init__(
        self,
        message: str = "The specified bucket does not exist",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when the addressed object does not exist in its bucket."""

    code = "NoSuchKey"
    category = ErrorCategory.NOT_FOUND

    def __init__(
        self,
        message: str = "The specified key does not exist",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class BucketAlreadyExistsError(ObjectStorageError):
    """Raised when creating a bucket whose name is already registered."""

    code = "BucketAlreadyExists"
    category = ErrorCategory.CONFLICT

    def __init__(
        self,
        message: str = "The requested bucket name is already in use",
        *,
        bucket: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket)


class BucketNotEmptyError(ObjectStorageError):
    """Raised when deleting a bucket that still holds objects or foreign files."""

    code = "BucketNotEmpty"
    category = ErrorCategory.CONFLICT

    def __init__(
        self,
        message: str = "The bucket you tried to delete is not empty",
        *,
        bucket: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket)


class ProhibitedNameError(ObjectStorageError):
    """Raised when a bucket name or key collides with a reserved catalog filename."""

    code = "InvalidBucketName"
    category = ErrorCategory.INVALID_ARGUMENT

    def __init__(
        self,
        message: str = "The name is reserved",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        if key is not None:
            self.code = "InvalidObjectName"


class PathTraversalError(ObjectStorageError):
    """Raised when a bucket name or key would escape the storage root."""

    code = "InvalidObjectName"
    category = ErrorCategory.INVALID_ARGUMENT

    def __init__(
        self,
        message: str = "Invalid name: path traversal detected",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class UndefinedLengthError(ObjectStorageError):
    """Raised when an upload does not declare its length up front."""

    code = "MissingContentLength"
    category = ErrorCategory.INVALID_ARGUMENT

    def __init__(
        self,
        message: str = "You must provide the Content-Length HTTP header",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class ObjectTooLargeError(ObjectStorageError):
    """Raised when the declared upload length exceeds the configured maximum."""

    code = "EntityTooLarge"
    category = ErrorCategory.INVALID_ARGUMENT

    def __init__(
        self,
        message: str = "Your proposed upload exceeds the maximum allowed object size",
        *,
        bucket: str | None = None,
        key: str | None = None,
        max_size: int | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.max_size = max_size


class IncompleteBodyError(ObjectStorageError):
    """Raised when the body size differs from the declared length."""

    code = "IncompleteBody"
    category = ErrorCategory.INVALID_ARGUMENT

    def __init__(
        self,
        message: str = "The body size does not match the declared Content-Length",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class CatalogCorruptionError(ObjectStorageError):
    """Raised when a catalog file cannot be parsed.

    This error is fatal at startup: the server must not serve requests with
    a registry that disagrees with its catalog.

    Attributes:
        path: Catalog file that failed to parse.
        line: 1-based row number of the offending record (if known).
    """

    code = "CatalogCorrupted"
    category = ErrorCategory.CORRUPTION

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        line: int | None = None,
        bucket: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket)
        self.path = path
        self.line = line

    def __str__(self) -> str:
        text = super().__str__()
        if self.path:
            text = f"{text} path={self.path}"
        if self.line is not None:
            text = f"{text} line={self.line}"
        return text


class StorageBackendError(ObjectStorageError):
    """Raised when the filesystem cannot complete an operation.

    Indicates the backend itself failed (disk full, permission denied,
    I/O error) rather than a logical error like a missing object.
    """

    code = "InternalError"
    category = ErrorCategory.IO_FAILURE

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class ProhibitedStoragePathError(StorageBackendError):
    """Raised when the storage root would overwrite the program's own files."""

    def __init__(self, message: str = "Prohibited storage path used") -> None:
        super().__init__(message)
