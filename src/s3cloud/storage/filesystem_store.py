"""S3Cloud Filesystem Object Storage backend.

Payloads are stored one file per object:
    {base_dir}/{bucket}/{key}

Uploads stream into a hidden temporary file in the bucket directory and are
renamed over the final path on commit, so readers see either the previous
payload or the complete new one. Replacing an object therefore also removes
its old payload.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO

from s3cloud.storage.catalog import RESERVED_NAMES, is_safe_segment, temp_path_for
from s3cloud.storage.errors import (
    BucketNotFoundError,
    IncompleteBodyError,
    ObjectNotFoundError,
    ObjectTooLargeError,
    PathTraversalError,
    ProhibitedNameError,
    StorageBackendError,
    UndefinedLengthError,
)
from s3cloud.storage.models import StoredObject, StoredObjectMetadata, utc_timestamp
from s3cloud.storage.object_store import (
    DEFAULT_CHUNK_SIZE,
    MAX_OBJECT_SIZE,
    ObjectStore,
    PendingUpload,
)
from s3cloud.storage.sniff import SNIFF_LEN, detect_content_type
from s3cloud.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


class FilesystemUpload(PendingUpload):
    """Upload streaming into a temporary file next to its final path."""

    def __init__(
        self,
        *,
        bucket: str,
        key: str,
        declared_length: int,
        content_type: str | None,
        final_path: Path,
    ) -> None:
        self.bucket = bucket
        self.key = key
        self.declared_length = declared_length
        self._content_type = content_type
        self._final_path = final_path
        self._tmp_path = temp_path_for(final_path)
        self._received = 0
        self._head = bytearray()
        self._closed = False
        self._metadata: StoredObjectMetadata | None = None
        try:
            self._file: BinaryIO = self._tmp_path.open("wb")
        except FileNotFoundError as e:
            raise BucketNotFoundError(bucket=bucket, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open upload file: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

    @property
    def received(self) -> int:
        return self._received

    def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        if self._closed:
            raise StorageBackendError(
                message="Upload is no longer writable", bucket=self.bucket, key=self.key
            )
        if self._received + len(chunk) > self.declared_length:
            self.abort()
            raise IncompleteBodyError(
                f"Body exceeds the declared length of {self.declared_length} bytes",
                bucket=self.bucket,
                key=self.key,
            )
        if len(self._head) < SNIFF_LEN:
            self._head += chunk[: SNIFF_LEN - len(self._head)]
        try:
            self._file.write(chunk)
        except OSError as e:
            self.abort()
            raise StorageBackendError(
                message=f"Failed to write payload: {e}",
                bucket=self.bucket,
                key=self.key,
                cause=e,
            ) from e
        self._received += len(chunk)

    def finalize(self) -> StoredObjectMetadata:
        if self._metadata is not None:
            return self._metadata
        if self._received != self.declared_length:
            self.abort()
            raise IncompleteBodyError(
                f"Received {self._received} of {self.declared_length} declared bytes",
                bucket=self.bucket,
                key=self.key,
            )
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
            self._file.close()
            self._closed = True
        except OSError as e:
            self.abort()
            raise StorageBackendError(
                message=f"Failed to flush payload: {e}",
                bucket=self.bucket,
                key=self.key,
                cause=e,
            ) from e

        self._metadata = StoredObjectMetadata(
            bucket=self.bucket,
            key=self.key,
            size_bytes=self._received,
            content_type=self._content_type or detect_content_type(bytes(self._head)),
            last_modified=utc_timestamp(),
        )
        return self._metadata

    def publish(self) -> None:
        if self.committed:
            return
        if self._metadata is None:
            raise StorageBackendError(
                message="Upload must be finalized before publishing",
                bucket=self.bucket,
                key=self.key,
            )
        try:
            self._tmp_path.replace(self._final_path)
        except OSError as e:
            self.abort()
            raise StorageBackendError(
                message=f"Failed to publish payload: {e}",
                bucket=self.bucket,
                key=self.key,
                cause=e,
            ) from e

        self.committed = True
        logger.debug(
            "Stored payload: bucket=%s key=%s size=%d type=%s",
            self.bucket,
            self.key,
            self._metadata.size_bytes,
            self._metadata.content_type,
        )

    def abort(self) -> None:
        if self.committed:
            return
        if not self._closed:
            self._file.close()
            self._closed = True
        self._tmp_path.unlink(missing_ok=True)


def _iter_source(source: BinaryIO | Iterable[bytes], chunk_size: int) -> Iterator[bytes]:
    read = getattr(source, "read", None)
    if read is None:
        yield from source  # type: ignore[misc]
        return
    while True:
        chunk = read(chunk_size)
        if not chunk:
            return
        yield chunk


def _read_chunks(f: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    try:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                return
            yield chunk
    finally:
        f.close()


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based payload storage.

    Bucket directories are created and removed by the catalog; this store
    only manages the payload files inside them.
    """

    def __init__(
        self,
        base_dir: str | Path,
        *,
        max_object_size: int = MAX_OBJECT_SIZE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Storage root shared with the catalog.
            max_object_size: Largest accepted declared length in bytes.
            chunk_size: Read size used when streaming payloads.
        """
        self._base_dir = Path(base_dir).resolve()
        self._max_object_size = max_object_size
        self._chunk_size = chunk_size
        logger.debug("FilesystemObjectStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def max_object_size(self) -> int:
        return self._max_object_size

    def _payload_path(self, bucket: str, key: str) -> Path:
        """Map (bucket, key) to a payload path, rejecting unsafe names."""
        if not is_safe_segment(bucket) or not is_safe_segment(key):
            raise PathTraversalError(bucket=bucket, key=key)
        if key in RESERVED_NAMES:
            raise ProhibitedNameError(
                f"Object key '{key}' is reserved for catalog files",
                bucket=bucket,
                key=key,
            )
        path = self._base_dir / bucket / key
        try:
            path.resolve().relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Path resolves outside storage base directory",
                bucket=bucket,
                key=key,
            ) from e
        return path

    def open_upload(
        self,
        bucket: str,
        key: str,
        declared_length: int | None,
        *,
        content_type: str | None = None,
    ) -> FilesystemUpload:
        if declared_length is None or declared_length < 0:
            raise UndefinedLengthError(bucket=bucket, key=key)
        if declared_length > self._max_object_size:
            raise ObjectTooLargeError(
                f"Declared length {declared_length} exceeds the maximum of "
                f"{self._max_object_size} bytes",
                bucket=bucket,
                key=key,
                max_size=self._max_object_size,
            )
        final_path = self._payload_path(bucket, key)
        return FilesystemUpload(
            bucket=bucket,
            key=key,
            declared_length=declared_length,
            content_type=content_type,
            final_path=final_path,
        )

    @traced_storage_operation("put")
    def put(
        self,
        bucket: str,
        key: str,
        source: BinaryIO | Iterable[bytes],
        declared_length: int | None,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        with self.open_upload(
            bucket, key, declared_length, content_type=content_type
        ) as upload:
            for chunk in _iter_source(source, self._chunk_size):
                upload.write(chunk)
            return upload.commit()

    @traced_storage_operation("get")
    def get(self, bucket: str, key: str) -> StoredObject:
        path = self._payload_path(bucket, key)
        try:
            f: BinaryIO = path.open("rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open payload: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        try:
            size = os.fstat(f.fileno()).st_size
            head = f.read(SNIFF_LEN)
            f.seek(0)
        except OSError as e:
            f.close()
            raise StorageBackendError(
                message=f"Failed to read payload: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        return StoredObject(
            bucket=bucket,
            key=key,
            size_bytes=size,
            content_type=detect_content_type(head),
            chunks=_read_chunks(f, self._chunk_size),
        )

    @traced_storage_operation("delete")
    def delete(self, bucket: str, key: str) -> None:
        path = self._payload_path(bucket, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete payload: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e
        logger.debug("Deleted payload: bucket=%s key=%s", bucket, key)

    def size_of(self, bucket: str, key: str) -> int | None:
        path = self._payload_path(bucket, key)
        try:
            return path.stat().st_size
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat payload: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e
