"""S3Cloud storage data models.

Registry records (BucketRecord, ObjectRecord) are immutable: the registry
replaces a bucket's record on every structural change, so snapshots handed
to callers can never be mutated behind the registry's back.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


def utc_timestamp(now: datetime | None = None) -> str:
    """Format a timestamp the way catalog rows store it (ISO-8601, UTC)."""
    if now is None:
        now = datetime.now(UTC)
    return now.isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class ObjectRecord:
    """Metadata for one object within a bucket.

    Attributes:
        key: Object key, unique within its bucket.
        content_length: Payload size in bytes.
        content_type: MIME type, client-supplied or sniffed.
        last_modified: Timestamp of the last (re)upload.
    """

    key: str
    content_length: int
    content_type: str
    last_modified: str

    def to_row(self) -> list[str]:
        """Serialize to a per-bucket catalog row."""
        return [self.key, str(self.content_length), self.content_type, self.last_modified]


@dataclass(frozen=True)
class BucketRecord:
    """A bucket and the objects it owns.

    Attributes:
        name: Bucket name; also the storage directory name.
        created: Creation timestamp.
        last_modified: Timestamp of the last structural change.
        objects: Object records owned by this bucket.
    """

    name: str
    created: str
    last_modified: str
    objects: tuple[ObjectRecord, ...] = field(default=())

    @property
    def status(self) -> str:
        """Derived status: active while the bucket holds at least one object."""
        return STATUS_ACTIVE if self.objects else STATUS_INACTIVE

    @property
    def object_count(self) -> int:
        return len(self.objects)

    def get_object(self, key: str) -> ObjectRecord | None:
        for obj in self.objects:
            if obj.key == key:
                return obj
        return None

    def with_objects(
        self, objects: tuple[ObjectRecord, ...], *, last_modified: str
    ) -> BucketRecord:
        """Return a copy holding a new object set."""
        return replace(self, objects=objects, last_modified=last_modified)

    def to_row(self) -> list[str]:
        """Serialize to a bucket catalog row."""
        return [self.name, self.created, self.last_modified, self.status]


@dataclass(frozen=True)
class StoredObjectMetadata:
    """Result of writing a payload to the object store.

    Attributes:
        bucket: Bucket the payload belongs to.
        key: Object key.
        size_bytes: Number of bytes written.
        content_type: Explicit or sniffed MIME type.
        last_modified: Timestamp of the write.
    """

    bucket: str
    key: str
    size_bytes: int
    content_type: str
    last_modified: str


@dataclass(frozen=True)
class StoredObject:
    """A readable payload.

    Attributes:
        bucket: Bucket the payload belongs to.
        key: Object key.
        size_bytes: Size of the payload file at open time.
        content_type: MIME type sniffed from the leading bytes.
        chunks: Iterator over the payload bytes; closes the file when exhausted.
    """

    bucket: str
    key: str
    size_bytes: int
    content_type: str
    chunks: Iterator[bytes]
