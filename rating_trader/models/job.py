"""
Job model — the persisted record of one asynchronous ingestion attempt.

``Job`` is the only Pydantic model in the system that is NOT frozen: its
``status``, ``progress``, ``total_items``, ``error_message`` and timestamps
change as the owning sync task advances. Callers outside that task should
treat the instances they read as snapshots.

Status transitions are monotonic::

    pending ─► processing ─► completed
                    │
                    └──────► failed

``completed`` and ``failed`` are terminal; the job store refuses any further
update once a job reaches either.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

DEFAULT_JOB_TYPE = "external_api_sync"


class JobStatus(StrEnum):
    """Lifecycle state of an ingestion job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class Job(BaseModel):
    """Ingestion job audit record.

    Attributes:
        job_id: UUID4 string assigned at creation; never changes.
        status: Current lifecycle state.
        job_type: Free-form tag describing the work, e.g. ``"external_api_sync"``.
        progress: Number of items committed so far.
        total_items: Number of items discovered; 0 until the feed is drained.
        error_message: Failure description, set only on transition to failed.
        created_at: UTC creation time.
        updated_at: UTC time of the last write.
        completed_at: UTC time the job completed successfully.
    """

    model_config = ConfigDict(frozen=False)

    job_id: str
    status: JobStatus = JobStatus.PENDING
    job_type: str = DEFAULT_JOB_TYPE
    progress: int = 0
    total_items: int = 0
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_progress(self) -> "Job":
        if self.progress < 0 or self.total_items < 0:
            raise ValueError("progress and total_items must be non-negative.")
        if self.total_items and self.progress > self.total_items:
            raise ValueError(
                f"progress ({self.progress}) exceeds total_items ({self.total_items})."
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def progress_pct(self) -> float:
        """Share of discovered items committed, as a percentage (0 when unknown)."""
        if not self.total_items:
            return 0.0
        return 100.0 * self.progress / self.total_items
