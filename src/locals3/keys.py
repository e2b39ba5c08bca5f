"""Mapping between hierarchical object keys and flat on-disk filenames.

Every object of a bucket lives directly inside the bucket directory, so the
path separator in a key is escaped before the key is used as a filename.
Decoding is a blind replace: a key that already contains the escape token
does not survive a round trip.
"""

SEPARATOR = "/"
ESCAPED_SEPARATOR = "%2f"


def encode_key(key: str) -> str:
    """Return the filename used to store ``key``."""
    return key.replace(SEPARATOR, ESCAPED_SEPARATOR)


def decode_key(name: str) -> str:
    """Return the object key stored under filename ``name``."""
    return name.replace(ESCAPED_SEPARATOR, SEPARATOR)
