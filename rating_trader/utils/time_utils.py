"""
Time and date utilities.

Key concepts:
  - All stored and compared timestamps are timezone-aware UTC.
  - Analysis windows are inclusive on both ends.
  - ``Deadline`` bounds the blocking work of a background sync task.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Optional

from rating_trader.errors import DeadlineExceeded, ValidationError


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp as stored in SQLite or sent by the feed.

    Accepts a trailing ``Z`` and fractional seconds of any precision the
    feed produces (truncated to microseconds).

    Raises:
        ValueError: If ``raw`` is not an ISO-8601 timestamp.
    """
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        for ch in rest:
            if not ch.isdigit():
                break
            digits += ch
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest[len(digits):]}"
    return ensure_utc(datetime.fromisoformat(text))


def parse_cli_date(raw: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """Parse a ``YYYY-MM-DD`` CLI argument into a UTC datetime.

    Args:
        raw: Date string or ``None``.
        end_of_day: If ``True``, return 23:59:59.999999 on that date so an
            end bound includes the whole day.

    Raises:
        ValidationError: If the string is not a ``YYYY-MM-DD`` date.
    """
    if raw is None:
        return None
    try:
        day = date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{raw}'. Use YYYY-MM-DD.") from exc
    if end_of_day:
        return datetime(day.year, day.month, day.day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def validate_date_range(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Normalise both bounds to UTC and reject ``start_date > end_date``.

    Raises:
        ValidationError: If the start bound is after the end bound.
    """
    start = ensure_utc(start_date) if start_date is not None else None
    end = ensure_utc(end_date) if end_date is not None else None
    if start is not None and end is not None and start > end:
        raise ValidationError(
            f"start_date ({start.isoformat()}) cannot be after end_date ({end.isoformat()})."
        )
    return start, end


def in_date_range(
    moment: datetime,
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> bool:
    """Return ``True`` if ``moment`` lies within the inclusive window."""
    if start_date is not None and moment < start_date:
        return False
    if end_date is not None and moment > end_date:
        return False
    return True


class Deadline:
    """Monotonic-clock execution budget for a background task.

    Usage::

        deadline = Deadline(seconds=1800)
        deadline.check("fetch page 3")   # raises DeadlineExceeded once spent
        timeout = deadline.cap(30.0)      # per-request timeout within budget
    """

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        """Seconds left before expiry (never negative)."""
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self, operation: str) -> None:
        """Raise ``DeadlineExceeded`` if the budget is spent."""
        if self.expired():
            raise DeadlineExceeded(
                f"Deadline of {self.seconds:.0f}s exceeded before {operation}."
            )

    def cap(self, timeout: float) -> float:
        """Return ``timeout`` reduced to the remaining budget."""
        return min(timeout, self.remaining())


def format_timestamp(value: datetime) -> str:
    """Render a datetime as fixed-width ISO-8601 UTC (``...T..:..:..ffffffZ``).

    A fixed width keeps lexical order in SQLite identical to time order.
    """
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
