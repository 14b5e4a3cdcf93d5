"""
Photo Index - Time-Ordered Capture Registry.

Maps capture timestamps (whole seconds, UTC) to the opaque references issued by
the photo store. Every insert is mirrored to the durable key-value store before
it becomes visible in memory, so the index can be rebuilt after a restart.
"""

import bisect
import sqlite3
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from logging_config import get_logger
from utils.db import decode_key, get_connection, put_photo, scan_photos

logger = get_logger(__name__)


class IndexCorruptionError(RuntimeError):
    """Raised when the durable store cannot be replayed into a valid index."""


@dataclass(frozen=True)
class PhotoRecord:
    """
    One stored capture.

    Attributes:
        timestamp: Capture time, timezone-aware UTC, whole seconds.
        reference: Opaque photo store identifier (e.g. a Telegram file_id).
    """

    timestamp: datetime
    reference: str


def to_epoch_seconds(timestamp: datetime) -> int:
    """Whole seconds since the epoch; naive datetimes are taken as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return int(timestamp.timestamp() // 1)


def from_epoch_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


class PhotoIndex:
    """
    Ordered, durable mapping from capture second to photo reference.

    One lock guards both the in-memory map and the durable write so the two
    never diverge. select() copies under the lock and evaluates the predicate
    outside it.
    """

    def __init__(self, db_path: Path | str | None = None):
        try:
            self._conn = get_connection(db_path)
        except sqlite3.DatabaseError as e:
            raise IndexCorruptionError(f"Photo index store cannot be opened: {e}") from e
        self._lock = threading.Lock()
        self._references: dict[int, str] = {}
        self._keys: list[int] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def insert(self, timestamp: datetime, reference: str) -> PhotoRecord:
        """
        Upserts a record; a capture landing on an existing second replaces it.

        Raises:
            PhotoStoreError: If the durable write fails. Memory is left unchanged.
        """
        seconds = to_epoch_seconds(timestamp)
        with self._lock:
            put_photo(self._conn, seconds, reference)
            if seconds not in self._references:
                bisect.insort(self._keys, seconds)
            else:
                logger.debug(f"Overwriting photo at {from_epoch_seconds(seconds)}")
            self._references[seconds] = reference
        return PhotoRecord(from_epoch_seconds(seconds), reference)

    def select(self, predicate: Callable[[datetime], bool]) -> list[PhotoRecord]:
        """Returns all records whose timestamp satisfies the predicate, oldest first."""
        with self._lock:
            snapshot = [(seconds, self._references[seconds]) for seconds in self._keys]
        records = []
        for seconds, reference in snapshot:
            timestamp = from_epoch_seconds(seconds)
            if predicate(timestamp):
                records.append(PhotoRecord(timestamp, reference))
        return records

    def latest(self, limit: int) -> list[PhotoRecord]:
        """Returns up to `limit` most recent records, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            keys = self._keys[-limit:]
            return [PhotoRecord(from_epoch_seconds(k), self._references[k]) for k in keys]

    def rebuild(self) -> int:
        """
        Replaces the in-memory map with the contents of the durable store.

        Returns:
            Number of records loaded.

        Raises:
            IndexCorruptionError: On any unreadable row or database error.
        """
        references: dict[int, str] = {}
        with self._lock:
            try:
                for key, value in scan_photos(self._conn):
                    references[decode_key(key)] = value.decode("utf-8")
            except (sqlite3.DatabaseError, ValueError) as e:
                # UnicodeDecodeError is a ValueError.
                raise IndexCorruptionError(f"Photo index store is unreadable: {e}") from e
            self._references = references
            self._keys = sorted(references)
        logger.info(f"Photo index rebuilt with {len(references)} records")
        return len(references)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
