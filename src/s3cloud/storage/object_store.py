"""S3Cloud Object Storage interface definition.

Provides the ObjectStore base class that payload backends implement. The
object store handles bytes only; bucket and object metadata live in the
registry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import BinaryIO

from s3cloud.storage.models import StoredObject, StoredObjectMetadata

MAX_OBJECT_SIZE = 1 << 30
DEFAULT_CHUNK_SIZE = 64 * 1024


class PendingUpload(ABC):
    """An upload in progress, fed incrementally by the caller.

    Completing an upload takes two steps: finalize() makes the bytes durable
    without exposing them, publish() atomically replaces the visible payload.
    The registry runs publish() inside its per-bucket critical section so the
    payload swap and the metadata change are serialized together.

    Usable as a context manager: leaving the block without publishing aborts
    the upload and removes any partially written data.
    """

    bucket: str
    key: str
    committed: bool = False

    @abstractmethod
    def write(self, chunk: bytes) -> None:
        """Append a chunk of payload bytes.

        Raises:
            IncompleteBodyError: If the data exceeds the declared length.
            StorageBackendError: If the backend cannot write.
        """
        ...

    @abstractmethod
    def finalize(self) -> StoredObjectMetadata:
        """Flush the written bytes to stable storage. Idempotent.

        Raises:
            IncompleteBodyError: If fewer bytes than declared were written.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def publish(self) -> None:
        """Make the finalized payload visible, replacing any previous payload.

        Raises:
            StorageBackendError: If the backend cannot swap the payload in.
        """
        ...

    def commit(self) -> StoredObjectMetadata:
        """Finalize and publish in one step."""
        metadata = self.finalize()
        self.publish()
        return metadata

    @abstractmethod
    def abort(self) -> None:
        """Discard partially written data. Safe to call more than once."""
        ...

    def __enter__(self) -> PendingUpload:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        if not self.committed:
            self.abort()


class ObjectStore(ABC):
    """Abstract base class for payload storage backends.

    Implementations:
    - FilesystemObjectStore: one file per object under the bucket directory
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability."""
        ...

    @abstractmethod
    def open_upload(
        self,
        bucket: str,
        key: str,
        declared_length: int | None,
        *,
        content_type: str | None = None,
    ) -> PendingUpload:
        """Start an upload whose length is known up front.

        Args:
            bucket: Bucket name.
            key: Object key.
            declared_length: Payload size announced by the client.
            content_type: Optional MIME type; sniffed from the payload if None.

        Returns:
            PendingUpload to feed with write() and finish with commit().

        Raises:
            UndefinedLengthError: If declared_length is None or negative.
            ObjectTooLargeError: If declared_length exceeds the maximum.
            BucketNotFoundError: If the bucket directory does not exist.
            PathTraversalError: If bucket or key would escape the storage root.
        """
        ...

    @abstractmethod
    def put(
        self,
        bucket: str,
        key: str,
        source: BinaryIO | Iterable[bytes],
        declared_length: int | None,
        *,
        content_type: str | None = None,
    ) -> StoredObjectMetadata:
        """Store a payload read from a file-like object or chunk iterable.

        Raises:
            Same as open_upload(), plus IncompleteBodyError when the source
            yields a different number of bytes than declared.
        """
        ...

    @abstractmethod
    def get(self, bucket: str, key: str) -> StoredObject:
        """Open a payload for streaming.

        Raises:
            ObjectNotFoundError: If the payload does not exist.
            StorageBackendError: If the backend cannot open it.
        """
        ...

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None:
        """Delete a payload. Deleting a missing payload is a no-op.

        Raises:
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def size_of(self, bucket: str, key: str) -> int | None:
        """Return the stored payload size, or None if there is no payload."""
        ...
