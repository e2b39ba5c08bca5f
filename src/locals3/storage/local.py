"""Local filesystem storage for LocalS3.

Buckets are directories directly under the storage root. Objects are files
directly inside their bucket directory, named by the encoded key
(see :mod:`locals3.keys`), so a bucket directory is always flat.

Writes go to a temp file in the staging directory ``STAGING_DIR`` under the
root, are fsynced, then renamed into the bucket. Startup empties the
staging directory, so orphans of interrupted writes never show up as
objects.
"""

import logging
import os
import shutil
import uuid
from pathlib import Path

from locals3.errors import BucketAlreadyExists, InternalError
from locals3.keys import decode_key, encode_key
from locals3.listing import list_objects, snapshot_directory
from locals3.models import BucketInfo, DirEntry, ListRequest, ListResult

logger = logging.getLogger(__name__)

# Holds in-flight writes. Never a bucket: validation rejects the name.
STAGING_DIR = ".locals3-tmp"


class LocalStorage:
    """Buckets and objects persisted under a single root directory.

    No state besides ``root`` is kept: bucket and object existence is
    always re-derived from the filesystem.

    Attributes:
        root: The storage root directory.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize the local storage.

        Args:
            root: Root directory holding one directory per bucket.
        """
        self.root = Path(root)

    def _bucket_path(self, bucket: str) -> Path:
        return self.root / bucket

    def _object_path(self, bucket: str, key: str) -> Path:
        """Return the filesystem path for a stored object.

        Args:
            bucket: The bucket name.
            key: The object key.

        Returns:
            ``{root}/{bucket}/{encoded key}``.
        """
        return self.root / bucket / encode_key(key)

    @property
    def staging_path(self) -> Path:
        return self.root / STAGING_DIR

    async def init(self) -> None:
        """Create the root and staging directories; drop orphan temp files."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.staging_path.mkdir(exist_ok=True)
        self._clean_temp_files()
        logger.info("Local storage initialized at %s", self.root)

    def _clean_temp_files(self) -> None:
        """Remove temp files left in the staging directory by interrupted writes."""
        count = 0
        for tmp in self.staging_path.iterdir():
            try:
                if tmp.is_dir():
                    shutil.rmtree(tmp)
                else:
                    tmp.unlink()
                count += 1
            except OSError:
                logger.warning("Could not remove temp file %s", tmp.name)
        if count > 0:
            logger.info("Cleaned %d orphan temp files on startup", count)

    async def close(self) -> None:
        """No-op for the local filesystem."""
        pass

    # -- Buckets ---------------------------------------------------------------

    async def list_buckets(self) -> list[BucketInfo]:
        """Return every bucket directory under the root, sorted by name."""
        return [
            BucketInfo(name=entry.name, created_at=entry.modified)
            for entry in self._snapshot_buckets()
        ]

    def _snapshot_buckets(self) -> list[DirEntry]:
        try:
            entries = snapshot_directory(self.root)
        except FileNotFoundError:
            return []
        return [
            e for e in entries if e.name != STAGING_DIR and (self.root / e.name).is_dir()
        ]

    async def bucket_exists(self, bucket: str) -> bool:
        """Return True if the bucket directory exists."""
        return self._bucket_path(bucket).is_dir()

    async def create_bucket(self, bucket: str) -> None:
        """Create a bucket directory.

        The existence check and the ``mkdir`` are not atomic; a concurrent
        create of the same bucket surfaces as BucketAlreadyExists.

        Raises:
            BucketAlreadyExists: If the directory already exists.
        """
        path = self._bucket_path(bucket)
        if path.exists():
            raise BucketAlreadyExists(bucket)
        try:
            path.mkdir()
        except FileExistsError:
            raise BucketAlreadyExists(bucket)
        logger.info("Created bucket: %s", path)

    async def delete_bucket(self, bucket: str) -> None:
        """Remove a bucket and everything in it. Absent buckets are ignored."""
        path = self._bucket_path(bucket)
        if path.is_dir():
            shutil.rmtree(path)
            logger.info("Deleted bucket: %s", bucket)

    # -- Objects ---------------------------------------------------------------

    async def put_object(self, bucket: str, key: str, data: bytes) -> str:
        """Store an object's bytes, replacing any previous version.

        The bucket directory is never created implicitly.

        Args:
            bucket: The bucket name.
            key: The object key.
            data: The raw bytes to store.

        Returns:
            The identifier of the stored object.

        Raises:
            InternalError: If the bytes cannot be written.
        """
        path = self._object_path(bucket, key)
        tmp = self.staging_path / uuid.uuid4().hex
        try:
            self.staging_path.mkdir(exist_ok=True)
            fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            try:
                os.write(fd, data)
                os.fsync(fd)
            finally:
                os.close(fd)
            tmp.replace(path)
            etag = str(path.stat().st_mtime_ns)
        except OSError as exc:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            logger.error("Failed saving object %s/%s: %s", bucket, key, exc)
            raise InternalError() from exc

        logger.debug("Put object: %s (%d bytes)", path, len(data))
        return etag

    async def get_object(self, bucket: str, key: str) -> tuple[bytes, DirEntry]:
        """Read an object's bytes and its directory entry.

        Returns:
            ``(data, entry)`` where ``entry`` carries size and mtime.

        Raises:
            InternalError: If the object is missing or unreadable.
        """
        path = self._object_path(bucket, key)
        try:
            data = path.read_bytes()
            entry = DirEntry.from_stat(path.name, path.stat())
        except OSError as exc:
            logger.error("Failed reading object %s/%s: %s", bucket, key, exc)
            raise InternalError() from exc
        return data, entry

    async def delete_object(self, bucket: str, key: str) -> bool:
        """Delete an object if present.

        Returns:
            True if an object was removed, False if there was none.
        """
        path = self._object_path(bucket, key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted object: %s", path)
        return True

    async def delete_objects(self, bucket: str) -> list[str]:
        """Remove every entry of a bucket.

        Returns:
            The decoded keys of the removed entries, in snapshot order. A
            missing bucket yields an empty list.
        """
        bucket_path = self._bucket_path(bucket)
        try:
            entries = snapshot_directory(bucket_path)
        except FileNotFoundError:
            return []

        deleted: list[str] = []
        for entry in entries:
            path = bucket_path / entry.name
            if path.is_dir():
                shutil.rmtree(path, ignore_errors=True)
            else:
                path.unlink(missing_ok=True)
            deleted.append(decode_key(entry.name))

        logger.info("Deleted %d objects from %s", len(deleted), bucket)
        return deleted

    async def list_objects(self, request: ListRequest) -> ListResult:
        """List a bucket's objects; see :func:`locals3.listing.list_objects`."""
        return list_objects(self.root, request)
