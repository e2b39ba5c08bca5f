"""Object listing over a bucket directory.

A listing walks a snapshot of the bucket directory and applies, in order:

    1. the marker (an *inclusive* resume point: the entry named by the
       marker is the first one considered),
    2. the prefix filter,
    3. delimiter grouping into common prefixes,
    4. the max-keys limit.

Two behaviours differ from S3: the marker is inclusive rather than "start
after", and an entry folded into a common prefix is still returned in
``contents`` (with the common prefix stripped from its displayed key).
"""

import logging
import os
import re
from pathlib import Path

from locals3.errors import NoSuchBucket
from locals3.keys import decode_key
from locals3.models import DirEntry, ListRequest, ListResult, ObjectSummary

logger = logging.getLogger(__name__)


def snapshot_directory(path: str | Path) -> list[DirEntry]:
    """Return the entries of ``path`` ordered by on-disk filename.

    Entries removed while the directory is being scanned are skipped.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
    """
    entries: list[DirEntry] = []
    with os.scandir(path) as it:
        for item in it:
            try:
                st = item.stat()
            except FileNotFoundError:
                continue
            entries.append(DirEntry.from_stat(item.name, st))
    entries.sort(key=lambda e: e.name)
    return entries


def locate_marker(entries: list[DirEntry], marker: str) -> list[DirEntry]:
    """Return the part of ``entries`` starting AT the entry named ``marker``.

    An empty marker, or one that names no entry, selects every entry.
    """
    if not marker:
        return entries
    for index, entry in enumerate(entries):
        if decode_key(entry.name) == marker:
            return entries[index:]
    return entries


def matches_prefix(name: str, prefix: str) -> bool:
    """Return True if ``name`` starts with ``prefix`` (empty matches all)."""
    return name.startswith(prefix)


def common_prefix_pattern(prefix: str, delimiter: str) -> re.Pattern[str] | None:
    """Compile the grouping pattern for ``prefix`` and ``delimiter``.

    The pattern captures the prefix plus everything up to and including the
    first delimiter after it. Returns None when no delimiter is given.
    """
    if not delimiter:
        return None
    return re.compile(f"({re.escape(prefix)}.*?{re.escape(delimiter)})", re.DOTALL)


def group_common_prefix(pattern: re.Pattern[str], name: str) -> tuple[str | None, str]:
    """Split ``name`` into its common-prefix label and displayed key.

    Returns:
        ``(label, display_key)``; ``label`` is None when ``name`` does not
        fall under a common prefix, in which case ``display_key`` is
        ``name`` unchanged.
    """
    m = pattern.match(name)
    if m is None:
        return None, name
    label = m.group(1)
    return label, name.replace(label, "", 1)


def list_objects(root: str | Path, request: ListRequest) -> ListResult:
    """List the objects of ``request.bucket`` under storage root ``root``.

    Args:
        root: The storage root directory.
        request: Listing parameters.

    Returns:
        The assembled ListResult.

    Raises:
        NoSuchBucket: If the bucket directory does not exist.
    """
    bucket_path = Path(root) / request.bucket
    if not bucket_path.is_dir():
        raise NoSuchBucket(request.bucket)

    result = ListResult(
        name=request.bucket,
        marker=request.marker,
        prefix=request.prefix,
        delimiter=request.delimiter,
        max_keys=request.max_keys,
    )
    pattern = common_prefix_pattern(request.prefix, request.delimiter)
    # dict keeps first-seen order for the labels
    common_prefixes: dict[str, None] = {}

    try:
        snapshot = snapshot_directory(bucket_path)
    except (FileNotFoundError, NotADirectoryError):
        # removed after the is_dir() check
        raise NoSuchBucket(request.bucket)

    entries = locate_marker(snapshot, request.marker)
    for entry in entries:
        key = decode_key(entry.name)
        if not matches_prefix(key, request.prefix):
            continue

        if pattern is not None:
            label, key = group_common_prefix(pattern, key)
            if label is not None:
                common_prefixes[label] = None

        if request.max_keys and len(result.contents) >= request.max_keys:
            result.is_truncated = True
            break

        result.contents.append(ObjectSummary.from_entry(key, entry))

    result.common_prefixes = list(common_prefixes)

    logger.debug(
        "Listed %d objects in %s (truncated=%s)",
        len(result.contents),
        request.bucket,
        result.is_truncated,
    )
    return result
