"""
SQLite connection management.

``get_connection()`` is the only way the rest of the package opens the
database. The connection it yields:
  - runs in WAL mode, so analysis reads proceed while a sync thread writes;
  - waits up to ``busy_timeout_ms`` on a locked database;
  - returns ``sqlite3.Row`` rows;
  - commits on clean exit and rolls back on exception.

Connections are never shared between threads. The sync thread and each
tracker call open their own.

Usage::

    from rating_trader.db.connection import get_connection

    with get_connection("data/db/rating_trader.db") as conn:
        RatingRepository(conn).get_by_ticker("AAPL")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from rating_trader.errors import PersistenceError

logger = logging.getLogger(__name__)

_MEMORY = ":memory:"


def _open(db_path: str, wal_mode: bool, busy_timeout_ms: int) -> sqlite3.Connection:
    if db_path != _MEMORY:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != _MEMORY:
            conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    The database file and its parent directories are created on first use.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: If ``True``, enable WAL journal mode (ignored in memory).
        busy_timeout_ms: Milliseconds to wait when the database is locked.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        PersistenceError: If the database cannot be opened or configured.
    """
    try:
        conn = _open(db_path, wal_mode, busy_timeout_ms)
    except (sqlite3.Error, OSError) as exc:
        raise PersistenceError("connect", f"cannot open {db_path}: {exc}") from exc

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
