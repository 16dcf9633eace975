"""CSV-backed metadata catalogs.

Layout under the storage root:
    {root}/buckets.csv              # name, created, modified, status
    {root}/{bucket}/objects.csv     # key, length, content-type, modified
    {root}/{bucket}/{key}           # payloads (owned by the object store)

Catalogs are always rewritten in full, through a temporary file that is
renamed over the old one, so a crash mid-write leaves either the old or the
new catalog and never a truncated one. Rows must have exactly four fields;
anything else is treated as corruption and never guessed at or padded.
"""

from __future__ import annotations

import csv
import errno
import logging
import os
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from s3cloud.storage.errors import (
    BucketNotEmptyError,
    CatalogCorruptionError,
    ProhibitedStoragePathError,
    StorageBackendError,
)
from s3cloud.storage.models import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    BucketRecord,
    ObjectRecord,
)

logger = logging.getLogger(__name__)

BUCKETS_CATALOG = "buckets.csv"
OBJECTS_CATALOG = "objects.csv"
RESERVED_NAMES = frozenset({BUCKETS_CATALOG, OBJECTS_CATALOG})

BUCKET_ROW_FIELDS = 4
OBJECT_ROW_FIELDS = 4

TEMP_PREFIX = "."
TEMP_SUFFIX = ".tmp"

PROHIBITED_STORAGE_PATHS = ("src", "scripts", "tests", "docs")

_PACKAGE_DIR = Path(__file__).resolve().parents[1]


def temp_path_for(path: Path) -> Path:
    """Return a unique hidden sibling path used for atomic replacement."""
    return path.with_name(f"{TEMP_PREFIX}{path.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")


def is_temp_name(name: str) -> bool:
    return name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX)


def is_safe_segment(name: str) -> bool:
    """Check that a bucket name or key maps to a single path segment."""
    if not name or name in (".", ".."):
        return False
    if name.startswith(TEMP_PREFIX):
        return False
    return not any(ch in name for ch in ("/", "\\", "\x00"))


def validate_storage_path(path: str | Path) -> Path:
    """Validate the storage root against paths the server must never own.

    Args:
        path: Configured storage root.

    Returns:
        The resolved storage root.

    Raises:
        ProhibitedStoragePathError: If the path is empty, on the deny-list,
            or inside the installed package directory.
    """
    raw = str(path).strip()
    if not raw or raw.strip("/") in PROHIBITED_STORAGE_PATHS:
        raise ProhibitedStoragePathError(f"Prohibited storage path used: '{raw}'")

    resolved = Path(raw).resolve()
    if resolved == _PACKAGE_DIR or _PACKAGE_DIR in resolved.parents:
        raise ProhibitedStoragePathError(
            f"Storage path '{raw}' points inside the s3cloud package directory"
        )
    return resolved


@dataclass
class CatalogContents:
    """Result of loading the catalogs.

    Attributes:
        buckets: Bucket records keyed by name.
        stale_status: Buckets whose stored status disagreed with their objects.
    """

    buckets: dict[str, BucketRecord] = field(default_factory=dict)
    stale_status: set[str] = field(default_factory=set)


class CsvCatalog:
    """Durable bucket and per-bucket object catalogs stored as CSV files."""

    def __init__(self, root: str | Path) -> None:
        self._root = validate_storage_path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def buckets_path(self) -> Path:
        return self._root / BUCKETS_CATALOG

    def bucket_dir(self, bucket: str) -> Path:
        return self._root / bucket

    def objects_path(self, bucket: str) -> Path:
        return self.bucket_dir(bucket) / OBJECTS_CATALOG

    def ensure_root(self) -> None:
        """Create the storage root if it does not exist."""
        if self._root.is_dir():
            return
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create storage directory {self._root}: {e}",
                cause=e,
            ) from e
        logger.info("Created storage directory: %s", self._root)

    def load(self) -> CatalogContents:
        """Load every bucket and its objects.

        Creates the storage root, the bucket catalog, and missing bucket
        directories or per-bucket catalogs along the way. Leftover temporary
        files from interrupted writes are removed.

        Raises:
            CatalogCorruptionError: On malformed rows, non-numeric lengths,
                unknown status values, unsafe names or duplicates.
            StorageBackendError: If the filesystem cannot be read or written.
        """
        self.ensure_root()
        self._remove_temp_files(self._root)

        contents = CatalogContents()
        if not self.buckets_path.exists():
            self._write_rows(self.buckets_path, [])
            logger.info("Created bucket catalog: %s", self.buckets_path)
            return contents

        for line, row in self._read_rows(self.buckets_path):
            if len(row) != BUCKET_ROW_FIELDS:
                raise CatalogCorruptionError(
                    f"Expected {BUCKET_ROW_FIELDS} fields in bucket row, got {len(row)}",
                    path=str(self.buckets_path),
                    line=line,
                )
            name, created, modified, status = row
            if not is_safe_segment(name):
                raise CatalogCorruptionError(
                    f"Unsafe bucket name '{name}' in bucket catalog",
                    path=str(self.buckets_path),
                    line=line,
                )
            if name in contents.buckets:
                raise CatalogCorruptionError(
                    "Duplicate bucket in bucket catalog",
                    path=str(self.buckets_path),
                    line=line,
                    bucket=name,
                )
            if status not in (STATUS_ACTIVE, STATUS_INACTIVE):
                raise CatalogCorruptionError(
                    f"Unknown bucket status '{status}'",
                    path=str(self.buckets_path),
                    line=line,
                    bucket=name,
                )

            record = BucketRecord(
                name=name,
                created=created,
                last_modified=modified,
                objects=self._load_objects(name),
            )
            if record.status != status:
                logger.warning(
                    "Bucket %s stored status %s disagrees with its %d objects",
                    name,
                    status,
                    record.object_count,
                )
                contents.stale_status.add(name)
            contents.buckets[name] = record

        logger.info("Loaded bucket catalog: %d buckets", len(contents.buckets))
        return contents

    def _load_objects(self, bucket: str) -> tuple[ObjectRecord, ...]:
        bucket_dir = self.bucket_dir(bucket)
        path = self.objects_path(bucket)

        if not bucket_dir.is_dir():
            try:
                bucket_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageBackendError(
                    message=f"Failed to create bucket directory: {e}",
                    bucket=bucket,
                    cause=e,
                ) from e
            logger.warning("Recreated missing directory for bucket %s", bucket)
        self._remove_temp_files(bucket_dir)

        if not path.exists():
            self._write_rows(path, [])
            logger.warning("Created missing object catalog for bucket %s", bucket)
            return ()

        objects: list[ObjectRecord] = []
        seen: set[str] = set()
        for line, row in self._read_rows(path):
            if len(row) != OBJECT_ROW_FIELDS:
                raise CatalogCorruptionError(
                    f"Expected {OBJECT_ROW_FIELDS} fields in object row, got {len(row)}",
                    path=str(path),
                    line=line,
                    bucket=bucket,
                )
            key, length_raw, content_type, modified = row
            if not is_safe_segment(key) or key in RESERVED_NAMES:
                raise CatalogCorruptionError(
                    f"Unsafe object key '{key}' in object catalog",
                    path=str(path),
                    line=line,
                    bucket=bucket,
                )
            if key in seen:
                raise CatalogCorruptionError(
                    f"Duplicate object key '{key}' in object catalog",
                    path=str(path),
                    line=line,
                    bucket=bucket,
                )
            try:
                length = int(length_raw)
            except ValueError as e:
                raise CatalogCorruptionError(
                    f"Non-numeric content length '{length_raw}' for key '{key}'",
                    path=str(path),
                    line=line,
                    bucket=bucket,
                ) from e
            if length < 0:
                raise CatalogCorruptionError(
                    f"Negative content length {length} for key '{key}'",
                    path=str(path),
                    line=line,
                    bucket=bucket,
                )

            seen.add(key)
            objects.append(
                ObjectRecord(
                    key=key,
                    content_length=length,
                    content_type=content_type,
                    last_modified=modified,
                )
            )
        return tuple(objects)

    def write_buckets(self, records: Iterable[BucketRecord]) -> None:
        """Rewrite the bucket catalog from the given records."""
        self._write_rows(self.buckets_path, [record.to_row() for record in records])

    def write_objects(self, bucket: str, objects: Iterable[ObjectRecord]) -> None:
        """Rewrite a bucket's object catalog from the given records."""
        self._write_rows(self.objects_path(bucket), [obj.to_row() for obj in objects])

    def create_bucket_dir(self, bucket: str) -> None:
        """Create a bucket directory holding an empty object catalog."""
        bucket_dir = self.bucket_dir(bucket)
        try:
            bucket_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create bucket directory: {e}",
                bucket=bucket,
                cause=e,
            ) from e
        self._write_rows(self.objects_path(bucket), [])
        logger.debug("Created bucket directory and object catalog: %s", bucket)

    def check_bucket_dir_empty(self, bucket: str) -> None:
        """Ensure the bucket directory holds nothing but its object catalog.

        Raises:
            BucketNotEmptyError: If any other entry is present.
            StorageBackendError: If the directory cannot be listed.
        """
        bucket_dir = self.bucket_dir(bucket)
        try:
            entries = [entry.name for entry in bucket_dir.iterdir()]
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list bucket directory: {e}",
                bucket=bucket,
                cause=e,
            ) from e

        foreign = [name for name in entries if name != OBJECTS_CATALOG]
        if foreign:
            raise BucketNotEmptyError(
                f"Bucket directory holds {len(foreign)} unexpected entries",
                bucket=bucket,
            )

    def remove_bucket_dir(self, bucket: str) -> None:
        """Remove a bucket's object catalog and its (empty) directory.

        If the directory cannot be removed the empty object catalog is
        written back, so the bucket stays intact on disk.

        Raises:
            BucketNotEmptyError: If an entry appeared in the directory after
                the emptiness check.
            StorageBackendError: If the catalog or directory cannot be removed.
        """
        objects_path = self.objects_path(bucket)
        try:
            objects_path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to remove object catalog: {e}",
                bucket=bucket,
                cause=e,
            ) from e

        try:
            self.bucket_dir(bucket).rmdir()
        except FileNotFoundError:
            return
        except OSError as e:
            self._write_rows(objects_path, [])
            if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                raise BucketNotEmptyError(
                    "Bucket directory gained entries during delete", bucket=bucket
                ) from e
            raise StorageBackendError(
                message=f"Failed to remove bucket directory: {e}",
                bucket=bucket,
                cause=e,
            ) from e

    def _read_rows(self, path: Path) -> list[tuple[int, list[str]]]:
        """Read non-blank CSV rows with their 1-based line numbers."""
        try:
            with path.open("r", newline="", encoding="utf-8") as f:
                reader = csv.reader(f, strict=True)
                return [(reader.line_num, row) for row in reader if row]
        except csv.Error as e:
            raise CatalogCorruptionError(f"Malformed CSV: {e}", path=str(path)) from e
        except UnicodeDecodeError as e:
            raise CatalogCorruptionError(f"Catalog is not valid UTF-8: {e}", path=str(path)) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read catalog {path.name}: {e}",
                cause=e,
            ) from e

    def _write_rows(self, path: Path, rows: list[list[str]]) -> None:
        """Write rows to path atomically."""
        tmp_path = temp_path_for(path)
        try:
            with tmp_path.open("w", newline="", encoding="utf-8") as f:
                csv.writer(f).writerows(rows)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageBackendError(
                message=f"Failed to write catalog {path.name}: {e}",
                cause=e,
            ) from e

    def _remove_temp_files(self, directory: Path) -> None:
        try:
            leftovers = [entry for entry in directory.iterdir() if is_temp_name(entry.name)]
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list directory {directory.name}: {e}",
                cause=e,
            ) from e
        for entry in leftovers:
            logger.warning("Removing leftover temporary file %s", entry.name)
            try:
                entry.unlink(missing_ok=True)
            except OSError as e:
                raise StorageBackendError(
                    message=f"Failed to remove temporary file {entry.name}: {e}",
                    cause=e,
                ) from e
