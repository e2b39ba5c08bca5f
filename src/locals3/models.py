"""Data model types for LocalS3.

These dataclasses describe what the storage layer reads back from the
filesystem (directory entries, buckets) and the request/result containers
of an object listing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory snapshot.

    Attributes:
        name: The on-disk (encoded) filename.
        size: Size in bytes as reported by ``stat``.
        modified: Modification time, UTC.
        modified_ns: Modification time in integer nanoseconds.
    """

    name: str
    size: int
    modified: datetime
    modified_ns: int

    @classmethod
    def from_stat(cls, name: str, st: os.stat_result) -> DirEntry:
        return cls(
            name=name,
            size=st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            modified_ns=st.st_mtime_ns,
        )

    @property
    def etag(self) -> str:
        """Identifier derived from the modification time, not the content."""
        return str(self.modified_ns)


@dataclass
class BucketInfo:
    """A bucket as seen on disk.

    Attributes:
        name: The bucket name (directory name).
        created_at: Directory modification time, UTC.
    """

    name: str
    created_at: datetime


@dataclass
class ObjectSummary:
    """A single ``Contents`` entry of a listing.

    Attributes:
        key: The displayed object key.
        size: Size in bytes.
        last_modified: Modification time, UTC.
        etag: Timestamp-derived identifier.
    """

    key: str
    size: int
    last_modified: datetime
    etag: str

    @classmethod
    def from_entry(cls, key: str, entry: DirEntry) -> ObjectSummary:
        return cls(
            key=key,
            size=entry.size,
            last_modified=entry.modified,
            etag=entry.etag,
        )


@dataclass(frozen=True)
class ListRequest:
    """Parameters of one ListObjects call.

    ``max_keys`` of zero means no limit.
    """

    bucket: str
    prefix: str = ""
    delimiter: str = ""
    marker: str = ""
    max_keys: int = 0


@dataclass
class ListResult:
    """Result of one ListObjects call.

    Attributes:
        name: The bucket name.
        marker: Echoed marker.
        prefix: Echoed prefix.
        delimiter: Echoed delimiter.
        max_keys: Echoed max-keys (0 when unlimited).
        is_truncated: Whether matching entries remain past this page.
        contents: Object summaries in scan order.
        common_prefixes: Group labels in first-seen order.
    """

    name: str
    marker: str = ""
    prefix: str = ""
    delimiter: str = ""
    max_keys: int = 0
    is_truncated: bool = False
    contents: list[ObjectSummary] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
