"""
Job lifecycle tracking for background ingestion.

``JobTracker`` is the only component that writes job records. Each call
opens its own short-lived connection and commits before returning, so a
caller polling ``get()`` from another thread sees progress as soon as the
sync task records it.

Status writes against a job that is already ``completed`` or ``failed`` are
refused by the job store. The tracker turns a refused write into
``NotFoundError`` when the job does not exist, and otherwise logs a warning
and returns ``False``.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.job_repo import JobRepository
from rating_trader.errors import NotFoundError
from rating_trader.models.job import DEFAULT_JOB_TYPE, Job, JobStatus
from rating_trader.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class JobTracker:
    """Create, advance and finish persisted ingestion jobs.

    Args:
        db_path: Path to the SQLite database holding the ``jobs`` table.
        wal_mode: Passed through to ``get_connection()``.
        busy_timeout_ms: Passed through to ``get_connection()``.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    def _connect(self):
        return get_connection(
            self.db_path, wal_mode=self.wal_mode, busy_timeout_ms=self.busy_timeout_ms
        )

    def create(self, job_type: str = DEFAULT_JOB_TYPE) -> Job:
        """Persist a new ``pending`` job and return it.

        Raises:
            PersistenceError: If the job store is unavailable.
        """
        now = utcnow()
        job = Job(
            job_id=str(uuid4()),
            status=JobStatus.PENDING,
            job_type=job_type,
            created_at=now,
            updated_at=now,
        )
        with self._connect() as conn:
            JobRepository(conn).create(job)
        logger.info("Job created: %s (%s)", job.job_id, job_type)
        return job

    def advance(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        total_items: int,
    ) -> bool:
        """Overwrite status and counters (last write wins).

        Callers own progress monotonicity; this method records whatever it
        is given as long as the job is not terminal.

        Returns:
            ``True`` if the job was updated, ``False`` if it was already terminal.

        Raises:
            NotFoundError: If ``job_id`` is unknown.
            PersistenceError: If the write fails.
        """
        with self._connect() as conn:
            repo = JobRepository(conn)
            updated = repo.update_status(job_id, status, progress, total_items)
            if not updated:
                self._explain_refusal(repo, job_id, "advance")
        if updated:
            logger.debug(
                "Job %s → %s (%d/%d)", job_id, JobStatus(status).value, progress, total_items
            )
        return updated

    def complete(self, job_id: str) -> bool:
        """Mark the job completed and stamp ``completed_at``."""
        with self._connect() as conn:
            repo = JobRepository(conn)
            updated = repo.mark_completed(job_id)
            if not updated:
                self._explain_refusal(repo, job_id, "complete")
        if updated:
            logger.info("Job %s completed", job_id)
        return updated

    def fail(self, job_id: str, error_message: str) -> bool:
        """Mark the job failed with ``error_message``."""
        with self._connect() as conn:
            repo = JobRepository(conn)
            updated = repo.mark_failed(job_id, error_message)
            if not updated:
                self._explain_refusal(repo, job_id, "fail")
        if updated:
            logger.error("Job %s failed: %s", job_id, error_message)
        return updated

    def get(self, job_id: str) -> Job:
        """Return the current snapshot of a job.

        Raises:
            NotFoundError: If ``job_id`` is unknown.
        """
        with self._connect() as conn:
            job = JobRepository(conn).get_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    @staticmethod
    def _explain_refusal(repo: JobRepository, job_id: str, action: str) -> None:
        existing = repo.get_by_id(job_id)
        if existing is None:
            raise NotFoundError(f"Job not found: {job_id}")
        logger.warning(
            "Ignoring %s on job %s: already %s", action, job_id, existing.status.value
        )
