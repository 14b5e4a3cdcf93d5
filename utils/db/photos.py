"""
Photo Reference Key-Value Operations.

Flat key-value layout: the key is the capture time as 8-byte little-endian
signed seconds since the epoch, the value is the UTF-8 encoded reference issued
by the photo store.
"""

import sqlite3
import struct
from collections.abc import Iterator

_KEY_FORMAT = "<q"
KEY_SIZE = struct.calcsize(_KEY_FORMAT)


class PhotoStoreError(RuntimeError):
    """Raised when the durable store cannot be written or read."""


def encode_key(seconds: int) -> bytes:
    return struct.pack(_KEY_FORMAT, seconds)


def decode_key(key: bytes) -> int:
    """Decodes a stored key; raises ValueError if it is not exactly 8 bytes."""
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key has {len(key)} bytes, expected {KEY_SIZE}")
    return struct.unpack(_KEY_FORMAT, key)[0]


def put_photo(conn: sqlite3.Connection, seconds: int, reference: str) -> None:
    """Upserts one record and commits it."""
    try:
        conn.execute(
            "INSERT OR REPLACE INTO photo_ids (key, value) VALUES (?, ?);",
            (encode_key(seconds), reference.encode("utf-8")),
        )
        conn.commit()
    except sqlite3.Error as e:
        raise PhotoStoreError(f"Failed to persist photo at {seconds}: {e}") from e


def scan_photos(conn: sqlite3.Connection) -> Iterator[tuple[bytes, bytes]]:
    """Yields raw (key, value) pairs in key order."""
    cursor = conn.execute("SELECT key, value FROM photo_ids ORDER BY key;")
    for key, value in cursor:
        if not isinstance(key, bytes) or not isinstance(value, bytes):
            raise ValueError(f"non-blob row in photo_ids: {type(key).__name__}/{type(value).__name__}")
        yield key, value


def count_photos(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) FROM photo_ids;").fetchone()
    return row[0] if row else 0
