"""
Repository for analyst rating records (``stock_ratings``).

Rows are append-only. Ordering guarantees callers rely on:
  - ``get_by_ticker`` and ``get_page`` return rows in insertion order
    (``rating_id`` ascending), which is the order the feed delivered them.
    The analyzer's stable time sort uses this as its tie-break.
  - ``get_latest_by_ticker`` returns the newest observation by ``time``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from rating_trader.db.repositories.base import BaseRepository
from rating_trader.models.rating import RatingRecord
from rating_trader.utils.time_utils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_INSERT_SQL = """
INSERT INTO stock_ratings (
    ticker, target_from, target_to, company, action,
    brokerage, rating_from, rating_to, time
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


class RatingRepository(BaseRepository):
    """Read/write access to the ``stock_ratings`` table."""

    def create(self, record: RatingRecord) -> int:
        """Insert one rating record and commit.

        Returns:
            The newly assigned ``rating_id``.
        """
        with self.transaction("create_rating"):
            cursor = self.execute("create_rating", _INSERT_SQL, _to_params(record))
        assert cursor.lastrowid is not None
        return int(cursor.lastrowid)

    def create_batch(self, records: list[RatingRecord]) -> int:
        """Insert ``records`` as one atomic unit.

        Either every row of the batch is committed or none is. Callers that
        need chunked progress split their input and call this once per chunk.

        Returns:
            Number of rows inserted.

        Raises:
            PersistenceError: If any row fails; the whole batch is rolled back.
        """
        if not records:
            return 0
        with self.transaction("create_rating_batch"):
            self.executemany(
                "create_rating_batch",
                _INSERT_SQL,
                [_to_params(r) for r in records],
            )
        return len(records)

    def get_by_id(self, rating_id: int) -> Optional[RatingRecord]:
        """Fetch a single record by primary key, or ``None``."""
        row = self.fetchone(
            "get_rating_by_id",
            "SELECT * FROM stock_ratings WHERE rating_id = ?;",
            (rating_id,),
        )
        return _row_to_record(row) if row else None

    def get_by_ticker(self, ticker: str) -> list[RatingRecord]:
        """Fetch every record for ``ticker`` in insertion order."""
        rows = self.fetchall(
            "get_ratings_by_ticker",
            "SELECT * FROM stock_ratings WHERE ticker = ? ORDER BY rating_id;",
            (ticker,),
        )
        return [_row_to_record(r) for r in rows]

    def get_latest_by_ticker(self, ticker: str) -> Optional[RatingRecord]:
        """Fetch the most recent observation for ``ticker``, or ``None``."""
        row = self.fetchone(
            "get_latest_rating_by_ticker",
            """
            SELECT * FROM stock_ratings
            WHERE ticker = ?
            ORDER BY time DESC, rating_id DESC
            LIMIT 1;
            """,
            (ticker,),
        )
        return _row_to_record(row) if row else None

    def get_page(self, offset: int, limit: int) -> list[RatingRecord]:
        """Fetch up to ``limit`` records starting at ``offset`` (insertion order)."""
        rows = self.fetchall(
            "get_ratings_page",
            "SELECT * FROM stock_ratings ORDER BY rating_id LIMIT ? OFFSET ?;",
            (limit, offset),
        )
        return [_row_to_record(r) for r in rows]

    def count(self) -> int:
        """Return total number of stored rating records."""
        row = self.fetchone("count_ratings", "SELECT COUNT(*) AS n FROM stock_ratings;")
        assert row is not None
        return int(row["n"])


# ── Private helpers ────────────────────────────────────────────────────────────

def _to_params(record: RatingRecord) -> tuple:
    return (
        record.ticker,
        record.target_from,
        record.target_to,
        record.company,
        record.action,
        record.brokerage,
        record.rating_from,
        record.rating_to,
        format_timestamp(record.time),
    )


def _row_to_record(row: sqlite3.Row) -> RatingRecord:
    return RatingRecord(
        rating_id=row["rating_id"],
        ticker=row["ticker"],
        target_from=row["target_from"],
        target_to=row["target_to"],
        company=row["company"],
        action=row["action"],
        brokerage=row["brokerage"],
        rating_from=row["rating_from"],
        rating_to=row["rating_to"],
        time=parse_timestamp(row["time"]),
    )
