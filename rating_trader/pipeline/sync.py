"""
Background sync: drain the external feed into the rating store.

Sequence for one job (each step records its outcome on the job)::

    1. advance(processing, 0, 0)
    2. feed.drain()                         → list[RatingRecord]
    3. advance(processing, 0, total)
    4. for each chunk of ``chunk_size`` items:
           create_batch(chunk)              one transaction per chunk
           advance(processing, done, total)
    5. complete()

The first failing step marks the job ``failed`` with a message naming the
step and the run stops. Chunks committed before a failing chunk stay
committed: the attempt is all-or-nothing, storage is not.

``start()`` runs the sequence on a daemon thread bounded by a ``Deadline``.
A run that overshoots its deadline stops at the next blocking boundary and
leaves the job in its last recorded state. Nothing raised inside the thread
reaches the caller that triggered it.

Usage::

    pipeline = IngestionPipeline(config, tracker, feed)
    job = tracker.create()
    pipeline.start(job.job_id)
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from rating_trader.config import AppConfig
from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.rating_repo import RatingRepository
from rating_trader.errors import DeadlineExceeded, RatingTraderError
from rating_trader.ingestion.feed_client import RatingFeedClient
from rating_trader.jobs.tracker import JobTracker
from rating_trader.models.job import JobStatus
from rating_trader.models.rating import RatingRecord
from rating_trader.utils.time_utils import Deadline

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Feed → chunked store commit, with job progress tracking.

    Attributes:
        config: Application configuration (chunk size, deadline, database).
        tracker: Job tracker; the pipeline is the sole writer of its job.
        feed: Feed client used to drain the external source.
        db_path: SQLite database receiving rating records.
    """

    def __init__(
        self,
        config: AppConfig,
        tracker: JobTracker,
        feed: RatingFeedClient,
        db_path: Optional[str] = None,
    ) -> None:
        self.config = config
        self.tracker = tracker
        self.feed = feed
        self.db_path = db_path or config.database.db_path

    # ── Background execution ───────────────────────────────────────────────────

    def start(self, job_id: str, deadline: Optional[Deadline] = None) -> threading.Thread:
        """Run the sync for ``job_id`` on a detached daemon thread.

        Args:
            job_id: A ``pending`` job created by the tracker.
            deadline: Execution budget; defaults to
                ``config.ingestion.deadline_minutes``.

        Returns:
            The started thread. Callers normally ignore it; tests join it.
        """
        if deadline is None:
            deadline = Deadline(self.config.ingestion.deadline_minutes * 60)
        thread = threading.Thread(
            target=self._run_guarded,
            args=(job_id, deadline),
            name=f"sync-{job_id[:8]}",
            daemon=True,
        )
        thread.start()
        logger.info(
            "Sync started for job %s on thread %s", job_id, thread.name,
            extra={"job_id": job_id},
        )
        return thread

    def _run_guarded(self, job_id: str, deadline: Deadline) -> None:
        """Thread target: run, then log whatever escaped."""
        try:
            self.run(job_id, deadline=deadline)
        except DeadlineExceeded as exc:
            logger.error("Sync for job %s aborted: %s", job_id, exc)
        except Exception as exc:
            logger.exception("Sync for job %s crashed", job_id)
            self._fail(job_id, f"Unexpected error: {exc}")
        finally:
            self.feed.close()

    # ── Sync sequence ──────────────────────────────────────────────────────────

    def run(self, job_id: str, deadline: Optional[Deadline] = None) -> bool:
        """Execute the sync sequence synchronously.

        Args:
            job_id: Job to drive.
            deadline: Optional execution budget.

        Returns:
            ``True`` if the job completed, ``False`` if it was failed or a
            status write was refused.

        Raises:
            DeadlineExceeded: If ``deadline`` runs out; the job is left as-is.
        """
        try:
            if not self.tracker.advance(job_id, JobStatus.PROCESSING, 0, 0):
                return False
        except RatingTraderError as exc:
            self._fail(job_id, f"Failed to update job status: {exc}")
            return False

        try:
            items = self.feed.drain(deadline=deadline)
        except DeadlineExceeded:
            raise
        except RatingTraderError as exc:
            self._fail(job_id, f"Failed to get items from external API: {exc}")
            return False

        total = len(items)
        try:
            if not self.tracker.advance(job_id, JobStatus.PROCESSING, 0, total):
                return False
        except RatingTraderError as exc:
            self._fail(job_id, f"Failed to update job progress: {exc}")
            return False

        if not self._store_chunks(job_id, items, deadline):
            return False

        try:
            completed = self.tracker.complete(job_id)
        except RatingTraderError as exc:
            self._fail(job_id, f"Failed to mark job as completed: {exc}")
            return False

        logger.info(
            "Sync for job %s finished: %d items stored", job_id, total,
            extra={"job_id": job_id},
        )
        return completed

    def _store_chunks(
        self,
        job_id: str,
        items: list[RatingRecord],
        deadline: Optional[Deadline],
    ) -> bool:
        """Commit ``items`` chunk by chunk, recording progress after each."""
        chunk_size = self.config.ingestion.chunk_size
        total = len(items)
        processed = 0

        for start in range(0, total, chunk_size):
            end = min(start + chunk_size, total)
            if deadline is not None:
                deadline.check(f"storing chunk {start}-{end}")

            chunk = items[start:end]
            try:
                with get_connection(
                    self.db_path,
                    wal_mode=self.config.database.wal_mode,
                    busy_timeout_ms=self.config.database.busy_timeout_ms,
                ) as conn:
                    RatingRepository(conn).create_batch(chunk)
            except RatingTraderError as exc:
                self._fail(job_id, f"Failed to store chunk {start}-{end}: {exc}")
                return False

            processed += len(chunk)
            try:
                if not self.tracker.advance(job_id, JobStatus.PROCESSING, processed, total):
                    return False
            except RatingTraderError as exc:
                self._fail(job_id, f"Failed to update job progress: {exc}")
                return False
            logger.debug("Job %s: stored chunk %d-%d (%d/%d)", job_id, start, end, processed, total)

        return True

    def _fail(self, job_id: str, message: str) -> None:
        """Record a failure; a failure to record it is logged, not raised."""
        try:
            self.tracker.fail(job_id, message)
        except RatingTraderError as exc:
            logger.error("Could not mark job %s failed (%s): %s", job_id, message, exc)
