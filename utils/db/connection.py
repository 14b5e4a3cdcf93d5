"""
Database Connection and Schema Management.

This module handles SQLite connection creation and schema initialization
for the durable photo index store.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path

from config import get_config

DB_FILENAME = "photo_index.db"

# Module-level cache: initialize schema once per database path.
# Tests point the store at tmp paths, so schema init must be keyed by db path.
_schema_initialized_paths: set[Path] = set()


def _get_db_path() -> Path:
    cfg = get_config()
    output_dir = Path(cfg["OUTPUT_DIR"])
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / DB_FILENAME


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    global _schema_initialized_paths
    db_path = Path(db_path) if db_path is not None else _get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL;")
    # Every insert is acknowledged only after it reaches disk.
    conn.execute("PRAGMA synchronous=FULL;")
    if db_path not in _schema_initialized_paths:
        _init_schema(conn)
        _schema_initialized_paths.add(db_path)
    return conn


@contextmanager
def closing_connection(db_path: Path | str | None = None):
    """Context manager that creates a DB connection and guarantees it is closed.

    IMPORTANT: `with sqlite3.Connection as conn:` only manages transactions
    (commit/rollback) - it does NOT call conn.close(). This context manager
    ensures the file descriptor is released when the block exits.

    Usage:
        with closing_connection() as conn:
            conn.execute("SELECT ...")
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _init_schema(conn: sqlite3.Connection) -> None:
    # key: 8-byte little-endian seconds since epoch, value: UTF-8 photo reference.
    conn.execute("""
        CREATE TABLE IF NOT EXISTS photo_ids (
            key BLOB PRIMARY KEY,
            value BLOB NOT NULL
        );
        """)
    conn.commit()
