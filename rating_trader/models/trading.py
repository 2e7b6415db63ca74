"""
Trading analysis models — derived values, never persisted.

``PricePoint`` is produced transiently while a rating series is scanned;
``TradingRecommendation`` is the output handed to callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PricePoint(BaseModel):
    """A parsed, analyzable price observation derived from a rating record.

    ``ticker`` is only populated by global analysis, where observations from
    different tickers share one timeline.
    """

    model_config = ConfigDict(frozen=True)

    price: float
    time: datetime
    brokerage: str = ""
    action: str = ""
    rating: str = ""
    ticker: Optional[str] = None


class DateRange(BaseModel):
    """Inclusive time window covered by an analysis."""

    model_config = ConfigDict(frozen=True)

    start_date: datetime
    end_date: datetime


class TradingRecommendation(BaseModel):
    """Best single buy/sell pair found in a rating series.

    Attributes:
        ticker: Analyzed ticker, or the global label for cross-ticker analysis.
        buy_price: Price at the buy point.
        sell_price: Price at the sell point.
        max_profit: ``sell_price - buy_price`` (always > 0).
        profit_percentage: ``max_profit / buy_price * 100``.
        buy_time / sell_time: Timestamps of the chosen points.
        buy_brokerage / sell_brokerage: Brokerage behind each point.
        buy_action / sell_action: Brokerage action at each point.
        buy_rating / sell_rating: ``rating_from`` at each point.
        buy_ticker / sell_ticker: Owning tickers (global analysis only).
        total_data_points: Parseable price points scanned.
        skipped_data_points: Records dropped because their price did not parse.
        date_range: First and last parseable point timestamps.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    buy_price: float
    sell_price: float
    max_profit: float
    profit_percentage: float
    buy_time: datetime
    sell_time: datetime
    buy_brokerage: str = ""
    sell_brokerage: str = ""
    buy_action: str = ""
    sell_action: str = ""
    buy_rating: str = ""
    sell_rating: str = ""
    buy_ticker: Optional[str] = None
    sell_ticker: Optional[str] = None
    total_data_points: int
    skipped_data_points: int = 0
    date_range: DateRange
