"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is **idempotent**:
safe to call on an already-initialized database (e.g. after restart or in tests).

Tables:
  1. stock_ratings  — analyst rating records, append-only
  2. jobs           — ingestion job lifecycle records

Timestamps are stored as ISO-8601 UTC strings so lexical order equals
chronological order.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_STOCK_RATINGS = """
CREATE TABLE IF NOT EXISTS stock_ratings (
    rating_id    INTEGER PRIMARY KEY AUTOINCREMENT,
    ticker       TEXT    NOT NULL,
    target_from  TEXT    NOT NULL DEFAULT '',
    target_to    TEXT    NOT NULL DEFAULT '',
    company      TEXT    NOT NULL DEFAULT '',
    action       TEXT    NOT NULL DEFAULT '',
    brokerage    TEXT    NOT NULL DEFAULT '',
    rating_from  TEXT    NOT NULL DEFAULT '',
    rating_to    TEXT    NOT NULL DEFAULT '',
    time         TEXT    NOT NULL,
    created_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at   TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_STOCK_RATINGS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_stock_ratings_ticker
    ON stock_ratings(ticker);
CREATE INDEX IF NOT EXISTS idx_stock_ratings_ticker_time
    ON stock_ratings(ticker, time);
"""

_DDL_JOBS = """
CREATE TABLE IF NOT EXISTS jobs (
    job_id         TEXT    PRIMARY KEY,
    status         TEXT    NOT NULL DEFAULT 'pending'
                   CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    job_type       TEXT    NOT NULL,
    progress       INTEGER NOT NULL DEFAULT 0,
    total_items    INTEGER NOT NULL DEFAULT 0,
    error_message  TEXT,
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    completed_at   TEXT
);
"""

_DDL_JOBS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_jobs_status
    ON jobs(status);
"""

ALL_TABLE_NAMES: list[str] = ["stock_ratings", "jobs"]

_ALL_DDL: list[str] = [
    _DDL_STOCK_RATINGS,
    _DDL_STOCK_RATINGS_INDEXES,
    _DDL_JOBS,
    _DDL_JOBS_INDEXES,
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not already exist.

    Args:
        conn: An open ``sqlite3.Connection``.
    """
    for ddl in _ALL_DDL:
        conn.executescript(ddl)
    conn.commit()
    logger.debug("Schema applied: %s", ", ".join(ALL_TABLE_NAMES))


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return list of table names present in the database (sorted)."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]
