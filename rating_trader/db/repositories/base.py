"""
Base repository providing shared SQLite execution helpers.

All repositories inherit from ``BaseRepository`` and receive a
``sqlite3.Connection`` at construction time. The connection is assumed
to be opened and managed by the caller (typically via ``get_connection()``).

Design:
  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak Pydantic models, not raw dicts.
  - Every ``sqlite3.Error`` leaves this layer as a ``PersistenceError``
    tagged with the repository operation that raised it.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Generator, Optional

from rating_trader.errors import PersistenceError

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, operation: str, sql: str, params: Params = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement on behalf of ``operation``.

        Raises:
            PersistenceError: Wrapping any ``sqlite3.Error``.
        """
        logger.debug("SQL [%s]: %s | params: %s", operation, sql.strip(), params)
        try:
            return self.conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(operation, str(exc)) from exc

    def executemany(
        self,
        operation: str,
        sql: str,
        params_list: list[Params],
    ) -> sqlite3.Cursor:
        """Execute a SQL statement for each element in ``params_list``.

        Raises:
            PersistenceError: Wrapping any ``sqlite3.Error``.
        """
        logger.debug("SQL many [%s]: %s | count: %d", operation, sql.strip(), len(params_list))
        try:
            return self.conn.executemany(sql, params_list)
        except sqlite3.Error as exc:
            raise PersistenceError(operation, str(exc)) from exc

    def fetchone(self, operation: str, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, or ``None``."""
        return self.execute(operation, sql, params).fetchone()

    def fetchall(self, operation: str, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        return self.execute(operation, sql, params).fetchall()

    def commit(self, operation: str) -> None:
        """Commit the current transaction so other connections see it."""
        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(operation, f"commit failed: {exc}") from exc

    @contextmanager
    def transaction(self, operation: str) -> Generator[None, None, None]:
        """Run the enclosed statements as one unit: commit on success,
        roll back everything on any exception.

        A transaction already open on the connection is committed first so
        the unit boundary is exact.
        """
        if self.conn.in_transaction:
            self.commit(operation)
        try:
            yield
        except Exception:
            self.conn.rollback()
            raise
        self.commit(operation)
