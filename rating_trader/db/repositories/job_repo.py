"""
Repository for ingestion job records (``jobs``).

Terminal protection lives in SQL: every UPDATE carries
``status NOT IN ('completed', 'failed')`` so a finished job can never be
rewritten, whichever connection issues the write. Update methods return
``True`` when a row changed and ``False`` when the job is unknown or
already terminal; the tracker decides which it was.

Every write commits immediately so a caller polling from another
connection sees progress as soon as it is recorded.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from rating_trader.db.repositories.base import BaseRepository
from rating_trader.models.job import Job, JobStatus
from rating_trader.utils.time_utils import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

_NOT_TERMINAL = "status NOT IN ('completed', 'failed')"


class JobRepository(BaseRepository):
    """Read/write access to the ``jobs`` table."""

    def create(self, job: Job) -> None:
        """Persist a new job record."""
        with self.transaction("create_job"):
            self.execute(
                "create_job",
                """
                INSERT INTO jobs (
                    job_id, status, job_type, progress, total_items,
                    error_message, created_at, updated_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    job.job_id,
                    job.status.value,
                    job.job_type,
                    job.progress,
                    job.total_items,
                    job.error_message,
                    format_timestamp(job.created_at),
                    format_timestamp(job.updated_at),
                    format_timestamp(job.completed_at) if job.completed_at else None,
                ),
            )

    def get_by_id(self, job_id: str) -> Optional[Job]:
        """Fetch a job by ID, or ``None`` if it does not exist."""
        row = self.fetchone(
            "get_job_by_id",
            "SELECT * FROM jobs WHERE job_id = ?;",
            (job_id,),
        )
        return _row_to_job(row) if row else None

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        progress: int,
        total_items: int,
    ) -> bool:
        """Overwrite status and counters on a non-terminal job."""
        with self.transaction("update_job_status"):
            cursor = self.execute(
                "update_job_status",
                f"""
                UPDATE jobs
                SET status = ?, progress = ?, total_items = ?, updated_at = ?
                WHERE job_id = ? AND {_NOT_TERMINAL};
                """,
                (
                    JobStatus(status).value,
                    progress,
                    total_items,
                    format_timestamp(utcnow()),
                    job_id,
                ),
            )
        return cursor.rowcount > 0

    def mark_completed(self, job_id: str) -> bool:
        """Set ``status='completed'`` and ``completed_at`` on a non-terminal job."""
        now = format_timestamp(utcnow())
        with self.transaction("mark_job_completed"):
            cursor = self.execute(
                "mark_job_completed",
                f"""
                UPDATE jobs
                SET status = 'completed', completed_at = ?, updated_at = ?
                WHERE job_id = ? AND {_NOT_TERMINAL};
                """,
                (now, now, job_id),
            )
        return cursor.rowcount > 0

    def mark_failed(self, job_id: str, error_message: str) -> bool:
        """Set ``status='failed'`` and the error message on a non-terminal job."""
        with self.transaction("mark_job_failed"):
            cursor = self.execute(
                "mark_job_failed",
                f"""
                UPDATE jobs
                SET status = 'failed', error_message = ?, updated_at = ?
                WHERE job_id = ? AND {_NOT_TERMINAL};
                """,
                (error_message, format_timestamp(utcnow()), job_id),
            )
        return cursor.rowcount > 0


# ── Private helper ─────────────────────────────────────────────────────────────

def _row_to_job(row: sqlite3.Row) -> Job:
    """Convert a ``sqlite3.Row`` from ``jobs`` to a ``Job``."""
    return Job(
        job_id=row["job_id"],
        status=JobStatus(row["status"]),
        job_type=row["job_type"],
        progress=row["progress"],
        total_items=row["total_items"],
        error_message=row["error_message"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
        completed_at=parse_timestamp(row["completed_at"]) if row["completed_at"] else None,
    )
