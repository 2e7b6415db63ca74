"""
Tests for JobTracker lifecycle and terminal protection.

What we test
------------
1. create(): pending job with zeroed counters and a UUID identifier.
2. advance / complete / fail: fields written and visible from a fresh read.
3. Terminal protection: no update lands once a job is completed or failed.
4. Unknown job IDs raise NotFoundError.
"""

from __future__ import annotations

import uuid

import pytest

from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.job_repo import JobRepository
from rating_trader.errors import NotFoundError
from rating_trader.jobs.tracker import JobTracker
from rating_trader.models.job import JobStatus


@pytest.fixture
def tracker(db_path) -> JobTracker:
    return JobTracker(db_path)


class TestCreate:
    def test_new_job_is_pending(self, tracker):
        job = tracker.create()

        assert job.status == JobStatus.PENDING
        assert job.job_type == "external_api_sync"
        assert (job.progress, job.total_items) == (0, 0)
        assert job.error_message is None
        assert job.completed_at is None
        uuid.UUID(job.job_id)

    def test_job_is_persisted(self, tracker):
        job = tracker.create("manual_import")
        stored = tracker.get(job.job_id)

        assert stored.job_id == job.job_id
        assert stored.job_type == "manual_import"
        assert stored.status == JobStatus.PENDING

    def test_ids_are_unique(self, tracker):
        assert tracker.create().job_id != tracker.create().job_id


class TestTransitions:
    def test_advance_overwrites_counters(self, tracker):
        job = tracker.create()

        assert tracker.advance(job.job_id, JobStatus.PROCESSING, 0, 10) is True
        assert tracker.advance(job.job_id, JobStatus.PROCESSING, 4, 10) is True

        stored = tracker.get(job.job_id)
        assert stored.status == JobStatus.PROCESSING
        assert (stored.progress, stored.total_items) == (4, 10)
        assert stored.progress_pct == pytest.approx(40.0)

    def test_progress_visible_from_another_connection(self, tracker, db_path):
        job = tracker.create()
        tracker.advance(job.job_id, JobStatus.PROCESSING, 3, 9)

        with get_connection(db_path) as conn:
            stored = JobRepository(conn).get_by_id(job.job_id)
        assert stored is not None
        assert stored.progress == 3

    def test_complete(self, tracker):
        job = tracker.create()
        tracker.advance(job.job_id, JobStatus.PROCESSING, 5, 5)

        assert tracker.complete(job.job_id) is True

        stored = tracker.get(job.job_id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.completed_at is not None
        assert stored.is_terminal

    def test_fail(self, tracker):
        job = tracker.create()

        assert tracker.fail(job.job_id, "Failed to get items from external API: boom") is True

        stored = tracker.get(job.job_id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "Failed to get items from external API: boom"
        assert stored.completed_at is None


class TestTerminalProtection:
    def test_completed_job_is_frozen(self, tracker):
        job = tracker.create()
        tracker.complete(job.job_id)

        assert tracker.advance(job.job_id, JobStatus.PROCESSING, 1, 2) is False
        assert tracker.fail(job.job_id, "late failure") is False

        stored = tracker.get(job.job_id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.error_message is None

    def test_failed_job_is_frozen(self, tracker):
        job = tracker.create()
        tracker.fail(job.job_id, "first")

        assert tracker.fail(job.job_id, "second") is False
        assert tracker.complete(job.job_id) is False

        stored = tracker.get(job.job_id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "first"


class TestUnknownJob:
    def test_get(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.get("no-such-job")

    def test_advance(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.advance("no-such-job", JobStatus.PROCESSING, 0, 0)

    def test_fail(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.fail("no-such-job", "msg")
