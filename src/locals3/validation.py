"""Request validation helpers for LocalS3.

Bucket names and object keys end up as path components under the storage
root, so these checks keep them from escaping their directory. Each
function raises an appropriate ``S3Error`` subclass on invalid input.
"""

from locals3.errors import InvalidArgument, InvalidBucketName, KeyTooLongError
from locals3.keys import encode_key
from locals3.storage.local import STAGING_DIR

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MAX_KEY_BYTES = 1024
_RESERVED_NAMES = {".", ".."}
_RESERVED_BUCKETS = _RESERVED_NAMES | {STAGING_DIR}

_MAX_KEYS_MESSAGE = "Argument max-keys must be a non-negative integer"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_bucket_name(name: str) -> None:
    """Validate a bucket name taken from the request host.

    Args:
        name: The candidate bucket name.

    Raises:
        InvalidBucketName: If the name is empty, reserved, or contains a
            path separator.
    """
    if not name or name in _RESERVED_BUCKETS:
        raise InvalidBucketName(name)

    if "/" in name or "\\" in name:
        raise InvalidBucketName(name)


def validate_object_key(key: str) -> None:
    """Validate an object key.

    Args:
        key: The object key string.

    Raises:
        InvalidArgument: If the key is empty or encodes to a reserved name.
        KeyTooLongError: If the key exceeds 1024 bytes when UTF-8 encoded.
    """
    if not key or encode_key(key) in _RESERVED_NAMES:
        raise InvalidArgument(f"Invalid object key: {key!r}")

    if len(key.encode("utf-8")) > _MAX_KEY_BYTES:
        raise KeyTooLongError()


def validate_max_keys(value: str | None) -> int:
    """Validate and parse the ``max-keys`` query parameter.

    Args:
        value: The raw string value from the query string, if any.

    Returns:
        A non-negative integer; 0 (no limit) when the parameter is absent
        or empty.

    Raises:
        InvalidArgument: If the value is not an integer or is negative.
    """
    if value is None or value == "":
        return 0

    try:
        n = int(value)
    except (ValueError, TypeError):
        raise InvalidArgument(_MAX_KEYS_MESSAGE)

    if n < 0:
        raise InvalidArgument(_MAX_KEYS_MESSAGE)

    return n
