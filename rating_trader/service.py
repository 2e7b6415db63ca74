"""
RatingService: the operations the delivery layer (CLI) calls.

Wires the job tracker, sync pipeline, analyzer and rating store behind one
object built from ``AppConfig``::

    service = RatingService(load_config())
    job = service.trigger_sync()          # returns immediately (pending)
    service.get_job(job.job_id)           # poll progress
    service.analyze_single("AAPL")

Rating reads and writes open a connection per call; the sync thread uses
its own connections, so foreground calls never share one with it.
"""

from __future__ import annotations

import logging
import math
import threading
from datetime import datetime
from typing import Callable, Optional

from rating_trader.analysis.analyzer import TradingAnalyzer
from rating_trader.config import AppConfig
from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.rating_repo import RatingRepository
from rating_trader.errors import NotFoundError, ValidationError
from rating_trader.ingestion.feed_client import RatingFeedClient
from rating_trader.jobs.tracker import JobTracker
from rating_trader.models.job import Job
from rating_trader.models.rating import RatingPage, RatingRecord
from rating_trader.models.trading import TradingRecommendation
from rating_trader.pipeline.sync import IngestionPipeline
from rating_trader.utils.time_utils import Deadline

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class RatingService:
    """Facade over ingestion, job tracking, rating storage and analysis.

    Args:
        config: Application configuration.
        db_path: Override for ``config.database.db_path``.
        feed_factory: Builds a fresh feed client for each sync. Defaults to
            ``RatingFeedClient.from_config(config.feed)``.
    """

    def __init__(
        self,
        config: AppConfig,
        db_path: Optional[str] = None,
        feed_factory: Optional[Callable[[], RatingFeedClient]] = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path
        self.tracker = JobTracker(
            self.db_path,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        )
        self.analyzer = TradingAnalyzer(config, db_path=self.db_path)
        self._feed_factory = feed_factory or (lambda: RatingFeedClient.from_config(config.feed))
        self._sync_threads: dict[str, threading.Thread] = {}

    def _connect(self):
        return get_connection(
            self.db_path,
            wal_mode=self.config.database.wal_mode,
            busy_timeout_ms=self.config.database.busy_timeout_ms,
        )

    # ── Sync jobs ──────────────────────────────────────────────────────────────

    def trigger_sync(self, deadline: Optional[Deadline] = None) -> Job:
        """Create a pending sync job and start it in the background.

        Overlapping triggers are not deduplicated; each starts its own job.
        Threads of earlier syncs that have finished are dropped from tracking.

        Returns:
            The job as created (``status='pending'``).

        Raises:
            PersistenceError: If the job cannot be recorded.
        """
        self._forget_finished_threads()
        job = self.tracker.create(self.config.ingestion.job_type)
        pipeline = IngestionPipeline(
            self.config, self.tracker, self._feed_factory(), db_path=self.db_path
        )
        self._sync_threads[job.job_id] = pipeline.start(job.job_id, deadline=deadline)
        return job

    def get_job(self, job_id: str) -> Job:
        """Return the current job snapshot (``NotFoundError`` if unknown)."""
        return self.tracker.get(job_id)

    def sync_thread(self, job_id: str) -> Optional[threading.Thread]:
        """Return the background thread started for ``job_id`` in this process.

        ``None`` if no such thread was started here, or if it has finished
        and been dropped by a later trigger.
        """
        return self._sync_threads.get(job_id)

    def _forget_finished_threads(self) -> None:
        finished = [jid for jid, t in self._sync_threads.items() if not t.is_alive()]
        for job_id in finished:
            del self._sync_threads[job_id]

    # ── Analysis ───────────────────────────────────────────────────────────────

    def analyze_single(
        self,
        ticker: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TradingRecommendation:
        return self.analyzer.analyze_single(ticker, start_date, end_date)

    def analyze_multiple(
        self,
        tickers: list[str],
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[TradingRecommendation]:
        return self.analyzer.analyze_multiple(tickers, start_date, end_date)

    def analyze_global(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TradingRecommendation:
        return self.analyzer.analyze_global(start_date, end_date)

    # ── Rating records ─────────────────────────────────────────────────────────

    def create_rating(self, record: RatingRecord) -> int:
        """Store one rating and return its ``rating_id``."""
        with self._connect() as conn:
            return RatingRepository(conn).create(record)

    def create_rating_batch(self, records: list[RatingRecord]) -> int:
        """Store ``records`` in chunks of ``ingestion.chunk_size``.

        Each chunk is atomic. If a chunk fails, earlier chunks stay stored
        and the ``PersistenceError`` propagates.

        Returns:
            Number of records stored.
        """
        chunk_size = self.config.ingestion.chunk_size
        stored = 0
        with self._connect() as conn:
            repo = RatingRepository(conn)
            for start in range(0, len(records), chunk_size):
                stored += repo.create_batch(records[start:start + chunk_size])
        logger.info("Stored %d rating records", stored)
        return stored

    def get_rating(self, rating_id: int) -> RatingRecord:
        """Fetch a rating by ID (``NotFoundError`` if absent)."""
        with self._connect() as conn:
            record = RatingRepository(conn).get_by_id(rating_id)
        if record is None:
            raise NotFoundError(f"Rating not found: {rating_id}")
        return record

    def get_ratings_by_ticker(self, ticker: str) -> list[RatingRecord]:
        """All ratings for ``ticker`` in insertion order (possibly empty)."""
        with self._connect() as conn:
            return RatingRepository(conn).get_by_ticker(ticker.strip())

    def get_latest_rating(self, ticker: str) -> RatingRecord:
        """Most recent rating for ``ticker`` (``NotFoundError`` if none)."""
        with self._connect() as conn:
            record = RatingRepository(conn).get_latest_by_ticker(ticker.strip())
        if record is None:
            raise NotFoundError(f"No ratings found for ticker {ticker}.")
        return record

    def list_ratings(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> RatingPage:
        """Return one page of stored ratings in insertion order.

        Args:
            page: 1-based page number.
            page_size: Records per page, 1 to ``MAX_PAGE_SIZE``.

        Raises:
            ValidationError: If ``page`` or ``page_size`` is out of range.
        """
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}.")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}."
            )

        with self._connect() as conn:
            repo = RatingRepository(conn)
            total = repo.count()
            data = repo.get_page((page - 1) * page_size, page_size)

        total_pages = math.ceil(total / page_size)
        return RatingPage(
            data=data,
            page=page,
            page_size=page_size,
            total_count=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
