"""Bucket registry: the in-memory index of buckets and object metadata.

The registry is the only authority on bucket and object existence. Every
structural change is persisted to the catalog before the call returns, and
the in-memory state never claims anything the catalog does not hold.

Locking:
    - ``_lock`` guards the bucket map and the bucket catalog.
    - one lock per bucket serializes object-list changes and the rewrite of
      that bucket's object catalog.
    Lock order is always bucket lock, then map lock.

Payload bytes are never streamed under a registry lock. Only the final
rename of a finished upload and the unlink of a deleted payload run inside
the bucket's critical section, next to the metadata change they belong to.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from s3cloud.storage.catalog import RESERVED_NAMES, CsvCatalog, is_safe_segment
from s3cloud.storage.errors import (
    BucketAlreadyExistsError,
    BucketNotEmptyError,
    BucketNotFoundError,
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    ProhibitedNameError,
)
from s3cloud.storage.models import (
    BucketRecord,
    ObjectRecord,
    StoredObjectMetadata,
    utc_timestamp,
)
from s3cloud.storage.object_store import ObjectStore, PendingUpload
from s3cloud.storage.tracing import record_payload, storage_span

logger = logging.getLogger(__name__)


class BucketRegistry:
    """Thread-safe index of buckets backed by a CsvCatalog."""

    def __init__(self, catalog: CsvCatalog, object_store: ObjectStore) -> None:
        """Initialize an empty registry.

        Args:
            catalog: Durable metadata store.
            object_store: Payload store, used to reconcile on load() and to
                remove payloads alongside their records.
        """
        self._catalog = catalog
        self._object_store = object_store
        self._buckets: dict[str, BucketRecord] = {}
        self._bucket_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    @property
    def catalog(self) -> CsvCatalog:
        return self._catalog

    def load(self) -> None:
        """Hydrate the registry from the catalog and reconcile with payloads.

        Object records whose payload is missing are dropped and records whose
        payload size differs are corrected from disk. Any fix is written back
        before returning.

        Raises:
            CatalogCorruptionError: If a catalog cannot be parsed.
            StorageBackendError: If the storage root cannot be read or created.
        """
        contents = self._catalog.load()
        buckets: dict[str, BucketRecord] = {}
        rewrite_buckets = bool(contents.stale_status)

        for name, record in contents.buckets.items():
            objects = self._reconcile_objects(record)
            if objects != record.objects:
                self._catalog.write_objects(name, objects)
                record = record.with_objects(objects, last_modified=utc_timestamp())
                rewrite_buckets = True
            buckets[name] = record

        if rewrite_buckets:
            self._catalog.write_buckets(buckets.values())

        with self._lock:
            self._buckets = buckets
            self._bucket_locks = {}

        logger.info(
            "Registry loaded: %d buckets, %d objects",
            len(buckets),
            sum(record.object_count for record in buckets.values()),
        )

    def _reconcile_objects(self, record: BucketRecord) -> tuple[ObjectRecord, ...]:
        objects: list[ObjectRecord] = []
        for obj in record.objects:
            size = self._object_store.size_of(record.name, obj.key)
            if size is None:
                logger.warning(
                    "Dropping record without payload: bucket=%s key=%s", record.name, obj.key
                )
                continue
            if size != obj.content_length:
                logger.warning(
                    "Correcting content length from %d to %d: bucket=%s key=%s",
                    obj.content_length,
                    size,
                    record.name,
                    obj.key,
                )
                obj = ObjectRecord(
                    key=obj.key,
                    content_length=size,
                    content_type=obj.content_type,
                    last_modified=obj.last_modified,
                )
            objects.append(obj)
        return tuple(objects)

    def _bucket_lock(self, name: str) -> threading.Lock:
        with self._lock:
            lock = self._bucket_locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._bucket_locks[name] = lock
            return lock

    def _require_bucket(self, name: str) -> BucketRecord:
        """Return a bucket record; caller must hold the map lock."""
        record = self._buckets.get(name)
        if record is None:
            raise BucketNotFoundError(bucket=name)
        return record

    def list_buckets(self) -> list[BucketRecord]:
        """Return a snapshot of all bucket records in unspecified order."""
        with self._lock:
            return list(self._buckets.values())

    def get_bucket(self, name: str) -> BucketRecord:
        """Return one bucket record.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
        """
        with self._lock:
            return self._require_bucket(name)

    def object_exists(self, bucket: str, key: str) -> bool:
        """Check whether an object is recorded in a bucket.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
        """
        with self._lock:
            return self._require_bucket(bucket).get_object(key) is not None

    def get_object(self, bucket: str, key: str) -> ObjectRecord:
        """Return one object record.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            ObjectNotFoundError: If the key is not recorded in the bucket.
        """
        with self._lock:
            obj = self._require_bucket(bucket).get_object(key)
        if obj is None:
            raise ObjectNotFoundError(bucket=bucket, key=key)
        return obj

    def create_bucket(self, name: str) -> BucketRecord:
        """Create an empty bucket.

        The directory and empty object catalog are created first, then the
        bucket catalog is rewritten with the new record, and only then is the
        record visible in memory. The bucket lock is held throughout, so a
        delete of the same name that is still removing its directory finishes
        first.

        Raises:
            ProhibitedNameError: If the name is a reserved catalog filename.
            PathTraversalError: If the name is not a single path segment.
            BucketAlreadyExistsError: If the bucket already exists.
            StorageBackendError: If the directory or catalogs cannot be written.
        """
        if name in RESERVED_NAMES:
            raise ProhibitedNameError(
                f"Bucket name '{name}' is reserved for catalog files", bucket=name
            )
        if not is_safe_segment(name):
            raise PathTraversalError(bucket=name)

        with self._bucket_lock(name):
            with self._lock:
                if name in self._buckets:
                    raise BucketAlreadyExistsError(bucket=name)

                now = utc_timestamp()
                record = BucketRecord(name=name, created=now, last_modified=now)
                self._catalog.create_bucket_dir(name)
                self._catalog.write_buckets([*self._buckets.values(), record])
                self._buckets[name] = record

        logger.info("Bucket created: %s", name)
        return record

    def delete_bucket(self, name: str) -> None:
        """Delete an empty bucket.

        The bucket leaves memory only after its catalog row, object catalog
        and directory are all gone. If the directory cannot be removed the
        catalog row is written back and the bucket stays.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            BucketNotEmptyError: If the bucket holds objects or its directory
                holds anything besides the object catalog, including an upload
                that started while the delete was in progress.
            StorageBackendError: If the catalogs or directory cannot be written.
        """
        # The lock stays registered: a waiter may still hold a reference and
        # a re-created bucket must share it.
        with self._bucket_lock(name):
            with self._lock:
                record = self._require_bucket(name)
                if record.objects:
                    raise BucketNotEmptyError(
                        f"Bucket holds {record.object_count} objects", bucket=name
                    )
                self._catalog.check_bucket_dir_empty(name)

                remaining = [b for b in self._buckets.values() if b.name != name]
                self._catalog.write_buckets(remaining)
                try:
                    self._catalog.remove_bucket_dir(name)
                except ObjectStorageError:
                    self._restore(self._catalog.write_buckets, list(self._buckets.values()))
                    raise
                del self._buckets[name]

        logger.info("Bucket deleted: %s", name)

    def record_object_upload(
        self,
        bucket: str,
        key: str,
        length: int,
        content_type: str,
        timestamp: str | None = None,
    ) -> bool:
        """Record a committed payload, replacing any existing record for the key.

        Args:
            bucket: Bucket name.
            key: Object key.
            length: Size of the committed payload.
            content_type: MIME type to serve for the object.
            timestamp: Upload time; defaults to now.

        Returns:
            True if an existing record was replaced, False if the key is new.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            StorageBackendError: If a catalog cannot be written.
        """
        new_obj = ObjectRecord(
            key=key,
            content_length=length,
            content_type=content_type,
            last_modified=timestamp or utc_timestamp(),
        )
        with self._bucket_lock(bucket):
            with self._lock:
                record = self._require_bucket(bucket)
            return self._apply_upload(record, new_obj)

    def commit_upload(self, upload: PendingUpload) -> tuple[StoredObjectMetadata, bool]:
        """Publish a fully received upload and record it.

        The payload is flushed to disk outside any lock. Under the bucket
        lock both catalogs are then rewritten, the payload is renamed over
        the previous one, and the in-memory record is replaced. If the rename
        fails the catalogs are written back, so the old record and the old
        payload stay together. If the bucket is gone the upload is left
        unpublished for the caller to abort.

        Returns:
            The stored payload metadata and whether an existing record was
            replaced.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            IncompleteBodyError: If the upload received fewer bytes than declared.
            StorageBackendError: If the payload or a catalog cannot be written.
        """
        backend = self._object_store.backend_name
        with storage_span("put", upload.bucket, upload.key, backend) as span:
            metadata = upload.finalize()
            new_obj = ObjectRecord(
                key=upload.key,
                content_length=metadata.size_bytes,
                content_type=metadata.content_type,
                last_modified=metadata.last_modified,
            )
            with self._bucket_lock(upload.bucket):
                with self._lock:
                    record = self._require_bucket(upload.bucket)
                replaced = self._apply_upload(record, new_obj, publish=upload.publish)
            record_payload(span, metadata)
        return metadata, replaced

    def _apply_upload(
        self,
        record: BucketRecord,
        new_obj: ObjectRecord,
        publish: Callable[[], None] | None = None,
    ) -> bool:
        remaining = tuple(obj for obj in record.objects if obj.key != new_obj.key)
        replaced = len(remaining) != len(record.objects)
        self._commit_objects(record, (*remaining, new_obj), publish=publish)

        logger.info(
            "Object %s: bucket=%s key=%s size=%d",
            "replaced" if replaced else "created",
            record.name,
            new_obj.key,
            new_obj.content_length,
        )
        return replaced

    def record_object_delete(self, bucket: str, key: str) -> ObjectRecord:
        """Remove an object record.

        Returns:
            The removed record.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            ObjectNotFoundError: If the key is not recorded in the bucket.
            StorageBackendError: If a catalog cannot be written.
        """
        with self._bucket_lock(bucket):
            return self._remove_record(bucket, key)

    def remove_object(self, bucket: str, key: str) -> ObjectRecord:
        """Remove an object record and its payload under the bucket lock.

        The record goes first; a payload left behind by a failed unlink only
        blocks deletion of the bucket and is reported by the caller.

        Raises:
            BucketNotFoundError: If the bucket does not exist.
            ObjectNotFoundError: If the key is not recorded in the bucket.
            StorageBackendError: If a catalog or the payload cannot be removed.
        """
        with self._bucket_lock(bucket):
            removed = self._remove_record(bucket, key)
            self._object_store.delete(bucket, key)
        return removed

    def _remove_record(self, bucket: str, key: str) -> ObjectRecord:
        with self._lock:
            record = self._require_bucket(bucket)

        removed = record.get_object(key)
        if removed is None:
            raise ObjectNotFoundError(bucket=bucket, key=key)
        objects = tuple(obj for obj in record.objects if obj.key != key)
        self._commit_objects(record, objects)

        logger.info("Object deleted: bucket=%s key=%s", bucket, key)
        return removed

    def _commit_objects(
        self,
        record: BucketRecord,
        objects: tuple[ObjectRecord, ...],
        publish: Callable[[], None] | None = None,
    ) -> None:
        """Persist a bucket's new object set; caller holds the bucket lock.

        The object catalog is written first, then the bucket catalog with the
        new status and timestamp, then ``publish`` runs if given. Memory is
        updated last. A failure at any step writes the earlier catalogs back
        and leaves the in-memory record unchanged.
        """
        updated = record.with_objects(objects, last_modified=utc_timestamp())
        self._catalog.write_objects(record.name, objects)
        try:
            with self._lock:
                buckets = {**self._buckets, record.name: updated}
                self._catalog.write_buckets(buckets.values())
                try:
                    if publish is not None:
                        publish()
                except Exception:
                    self._restore(self._catalog.write_buckets, list(self._buckets.values()))
                    raise
                self._buckets = buckets
        except Exception:
            self._restore(self._catalog.write_objects, record.name, record.objects)
            raise

    def _restore(self, write: Callable[..., None], *args: Any) -> None:
        """Write back a catalog after a failed change; the original error wins."""
        try:
            write(*args)
        except ObjectStorageError:
            logger.exception("Failed to restore catalog after an aborted change")
