"""
Exception hierarchy for rating-trader.

Every error the core raises derives from ``RatingTraderError`` so the CLI
can map the whole family to a clean ``[ERROR]`` line and exit code 1 while
programming errors still surface with a traceback.

  RatingTraderError
  ├── NotFoundError                 unknown job, rating or ticker
  ├── ValidationError               bad date range, empty ticker list, bad paging
  ├── ExternalFetchError            feed returned non-2xx / transport failure
  ├── PersistenceError              SQLite operation failed
  ├── DeadlineExceeded              sync task ran past its deadline
  └── AnalysisError
      ├── InsufficientDataError     fewer than 2 usable price points
      ├── NoProfitableOpportunityError
      └── NoValidRecommendationsError  every ticker in a batch failed
"""

from __future__ import annotations

from typing import Optional


class RatingTraderError(Exception):
    """Base class for all rating-trader errors."""


class NotFoundError(RatingTraderError):
    """Raised when a job, rating record or ticker has no data."""


class ValidationError(RatingTraderError, ValueError):
    """Raised for malformed caller input (date ranges, ticker lists, paging)."""


class ExternalFetchError(RatingTraderError):
    """Raised when the external rating feed cannot be drained.

    Attributes:
        status_code: HTTP status of the failing response, or ``None`` for
            transport and decoding failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(RatingTraderError):
    """Raised when a store operation fails.

    Attributes:
        operation: Short name of the repository operation that failed.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class DeadlineExceeded(RatingTraderError):
    """Raised inside a sync task once its execution deadline has passed."""


class AnalysisError(RatingTraderError):
    """Base class for trading-analysis outcomes that yield no recommendation."""


class InsufficientDataError(AnalysisError):
    """Raised when fewer than two parseable price points remain."""


class NoProfitableOpportunityError(AnalysisError):
    """Raised when no sell point beats an earlier buy point."""


class NoValidRecommendationsError(AnalysisError):
    """Raised when every ticker in a multi-ticker analysis fails."""
