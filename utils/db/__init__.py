"""
Photo Index Storage Module.

Durable key-value storage backing the in-memory photo index.

Usage:
    from utils.db import get_connection, put_photo, scan_photos
"""

from utils.db.connection import (
    DB_FILENAME,
    _get_db_path,
    _init_schema,
    closing_connection,
    get_connection,
)
from utils.db.photos import (
    KEY_SIZE,
    PhotoStoreError,
    count_photos,
    decode_key,
    encode_key,
    put_photo,
    scan_photos,
)

__all__ = [
    # Connection
    "DB_FILENAME",
    "_get_db_path",
    "_init_schema",
    "closing_connection",
    "get_connection",
    # Photos
    "KEY_SIZE",
    "PhotoStoreError",
    "count_photos",
    "decode_key",
    "encode_key",
    "put_photo",
    "scan_photos",
]
