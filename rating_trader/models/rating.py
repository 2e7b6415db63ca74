"""
Analyst rating models — feed payloads and stored records.

``RatingRecord`` is the single shape used end to end: the feed client parses
JSON items into it, the repository persists it, and the analyzer reads it
back. ``target_from`` / ``target_to`` stay textual at this layer because the
feed does not guarantee numeric values; parsing happens at analysis time.

Both models are frozen. Stored records are append-only input for analysis.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RatingRecord(BaseModel):
    """A single analyst rating observation.

    Attributes:
        rating_id: Store primary key; ``None`` before insertion.
        ticker: Stock ticker symbol, e.g. ``"AAPL"``.
        target_from: Previous price target as published (e.g. ``"$150.00"``).
        target_to: New price target as published.
        company: Company name.
        action: Brokerage action, e.g. ``"target raised by"``.
        brokerage: Issuing brokerage.
        rating_from: Previous rating, e.g. ``"Neutral"``.
        rating_to: New rating, e.g. ``"Buy"``.
        time: UTC observation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    rating_id: Optional[int] = None
    ticker: str
    target_from: str = ""
    target_to: str = ""
    company: str = ""
    action: str = ""
    brokerage: str = ""
    rating_from: str = ""
    rating_to: str = ""
    time: datetime

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("ticker must be a non-empty string.")
        return v

    @field_validator("time")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        # Naive timestamps are taken as UTC so comparisons never mix kinds.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class FeedPage(BaseModel):
    """One page of the external rating feed.

    ``next_page`` is an opaque cursor; an empty string means the feed is
    exhausted. ``skipped_items`` counts raw items dropped as malformed.
    """

    model_config = ConfigDict(frozen=True)

    items: list[RatingRecord] = []
    next_page: str = ""
    skipped_items: int = 0

    @field_validator("next_page", mode="before")
    @classmethod
    def coerce_missing_cursor(cls, v: Optional[str]) -> str:
        return v or ""


class RatingPage(BaseModel):
    """A page of stored ratings for listing callers."""

    model_config = ConfigDict(frozen=True)

    data: list[RatingRecord]
    page: int
    page_size: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool
