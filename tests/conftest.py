"""
Shared pytest fixtures for the rating-trader test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``db_path``: A file-backed database with the schema applied, for code
    that opens its own connections (tracker, pipeline, analyzer, service).
  - ``app_config``: An ``AppConfig`` pointing at ``db_path`` with a small
    chunk size and a test feed.
  - ``make_rating`` / ``feed_item``: factories for rating records and raw
    feed items.
  - ``make_feed``: builds a ``RatingFeedClient`` over ``httpx.MockTransport``
    serving a fixed list of pages.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, Optional

import httpx
import pytest

from rating_trader.config import (
    AppConfig,
    DatabaseConfig,
    FeedConfig,
    IngestionConfig,
    LoggingConfig,
)
from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.rating_repo import RatingRepository
from rating_trader.db.schema import apply_schema
from rating_trader.ingestion.feed_client import RatingFeedClient
from rating_trader.models.rating import RatingRecord

BASE_TIME = datetime(2025, 1, 1, 9, 30, 0, tzinfo=timezone.utc)
FEED_BASE_URL = "https://feed.test"
FEED_TOKEN = "test-token"


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path to a file-backed SQLite database with the schema applied."""
    path = str(tmp_path / "rating_trader.db")
    with get_connection(path) as conn:
        apply_schema(conn)
    return path


@pytest.fixture
def app_config(db_path) -> AppConfig:
    """``AppConfig`` wired to ``db_path`` with ``chunk_size=2``."""
    return AppConfig(
        database=DatabaseConfig(db_path=db_path),
        feed=FeedConfig(base_url=FEED_BASE_URL, token=FEED_TOKEN, timeout_seconds=5.0),
        ingestion=IngestionConfig(chunk_size=2, deadline_minutes=1),
        logging=LoggingConfig(log_file=""),
    )


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def make_rating() -> Callable[..., RatingRecord]:
    """Factory for ``RatingRecord``; ``day`` offsets the time from ``BASE_TIME``."""

    def _make(
        ticker: str = "AAPL",
        target_from: str = "$10.00",
        day: float = 0,
        **overrides: Any,
    ) -> RatingRecord:
        fields: dict[str, Any] = {
            "ticker": ticker,
            "target_from": target_from,
            "target_to": "$12.00",
            "company": f"{ticker} Inc.",
            "action": "target raised by",
            "brokerage": "Test Securities",
            "rating_from": "Neutral",
            "rating_to": "Buy",
            "time": BASE_TIME + timedelta(days=day),
        }
        fields.update(overrides)
        return RatingRecord(**fields)

    return _make


@pytest.fixture
def store_ratings(db_path) -> Callable[[list[RatingRecord]], None]:
    """Insert records into ``db_path`` in the given order."""

    def _store(records: list[RatingRecord]) -> None:
        with get_connection(db_path) as conn:
            RatingRepository(conn).create_batch(records)

    return _store


@pytest.fixture
def feed_item() -> Callable[..., dict]:
    """Factory for raw feed JSON items as served by the external API."""

    def _make(ticker: str = "AAPL", target_from: str = "$10.00", day: int = 0) -> dict:
        return {
            "ticker": ticker,
            "target_from": target_from,
            "target_to": "$12.00",
            "company": f"{ticker} Inc.",
            "action": "target raised by",
            "brokerage": "Test Securities",
            "rating_from": "Neutral",
            "rating_to": "Buy",
            "time": (BASE_TIME + timedelta(days=day)).strftime("%Y-%m-%dT%H:%M:%S.%f000Z"),
        }

    return _make


def paged_handler(
    pages: list[list[dict]],
    requests: Optional[list[httpx.Request]] = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler serving ``pages`` with cursors ``page-1``, ``page-2``…"""

    def _handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        cursor = request.url.params.get("next_page")
        index = int(cursor.split("-")[1]) if cursor else 0
        next_page = f"page-{index + 1}" if index + 1 < len(pages) else ""
        return httpx.Response(200, json={"items": pages[index], "next_page": next_page})

    return _handler


@pytest.fixture
def make_feed() -> Callable[..., RatingFeedClient]:
    """Build a ``RatingFeedClient`` over ``httpx.MockTransport``.

    Pass either ``pages`` (served by ``paged_handler``) or a custom ``handler``.
    """

    def _make(
        pages: Optional[list[list[dict]]] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        requests: Optional[list[httpx.Request]] = None,
    ) -> RatingFeedClient:
        transport = httpx.MockTransport(handler or paged_handler(pages or [[]], requests))
        return RatingFeedClient(
            base_url=FEED_BASE_URL,
            token=FEED_TOKEN,
            timeout=5.0,
            client=httpx.Client(transport=transport),
        )

    return _make
