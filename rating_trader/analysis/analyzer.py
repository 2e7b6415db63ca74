"""
TradingAnalyzer: best buy/sell window over stored analyst price targets.

Three access patterns share one pipeline::

    records ─► date filter ─► stable time sort ─► PricePoints ─► find_best_trade
                                                  (target_from parsed;
                                                   unparseable skipped)

  - ``analyze_single``   one ticker.
  - ``analyze_multiple`` several tickers, failures skipped, ranked by
                         profit percentage.
  - ``analyze_global``   every stored record merged into one timeline;
                         buy and sell may belong to different tickers.

The analyzer is read-only and opens its own connections, so it runs safely
while a sync task is writing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from rating_trader.analysis.ranker import rank_by_profit_percentage
from rating_trader.analysis.scan import find_best_trade
from rating_trader.config import AppConfig
from rating_trader.db.connection import get_connection
from rating_trader.db.repositories.rating_repo import RatingRepository
from rating_trader.errors import (
    AnalysisError,
    NotFoundError,
    NoValidRecommendationsError,
    ValidationError,
)
from rating_trader.ingestion.price_parser import parse_price
from rating_trader.models.rating import RatingRecord
from rating_trader.models.trading import DateRange, PricePoint, TradingRecommendation
from rating_trader.utils.time_utils import in_date_range, validate_date_range

logger = logging.getLogger(__name__)


class TradingAnalyzer:
    """Compute trading recommendations from the rating store.

    Attributes:
        config: Application configuration.
        db_path: SQLite database to read (defaults to ``config.database.db_path``).
    """

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def _connect(self):
        return get_connection(
            self.db_path,
            wal_mode=self.config.database.wal_mode,
            busy_timeout_ms=self.config.database.busy_timeout_ms,
        )

    # ── Public API ─────────────────────────────────────────────────────────────

    def analyze_single(
        self,
        ticker: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TradingRecommendation:
        """Best trade for one ticker within an optional inclusive window.

        Raises:
            ValidationError: Empty ticker, or ``start_date`` after ``end_date``.
            NotFoundError: No ratings for the ticker, or none in the window.
            InsufficientDataError: Fewer than two parseable prices.
            NoProfitableOpportunityError: Prices never rise.
        """
        start, end = validate_date_range(start_date, end_date)
        return self._analyze_ticker(_clean_ticker(ticker), start, end)

    def analyze_multiple(
        self,
        tickers: list[str],
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> list[TradingRecommendation]:
        """Analyze each ticker and rank the successes by profit percentage.

        A ticker that cannot produce a recommendation is logged and skipped.

        Raises:
            ValidationError: Empty ticker list or bad date range.
            NoValidRecommendationsError: No ticker produced a recommendation.
        """
        if not tickers:
            raise ValidationError("At least one ticker is required.")
        start, end = validate_date_range(start_date, end_date)

        recommendations: list[TradingRecommendation] = []
        for ticker in tickers:
            try:
                recommendations.append(self._analyze_ticker(_clean_ticker(ticker), start, end))
            except (NotFoundError, ValidationError, AnalysisError) as exc:
                logger.warning("Skipping ticker %r: %s", ticker, exc)

        if not recommendations:
            raise NoValidRecommendationsError(
                f"No valid recommendations found for any of {len(tickers)} tickers."
            )
        return rank_by_profit_percentage(recommendations)

    def analyze_global(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TradingRecommendation:
        """Best trade across every stored record treated as one timeline.

        The buy and sell points may come from different tickers; they are
        reported in ``buy_ticker`` / ``sell_ticker``.

        Raises:
            ValidationError: ``start_date`` after ``end_date``.
            NotFoundError: Store empty, or nothing in the window.
            InsufficientDataError: Fewer than two parseable prices.
            NoProfitableOpportunityError: Prices never rise.
        """
        start, end = validate_date_range(start_date, end_date)
        records = self._load_all_records()
        if not records:
            raise NotFoundError("No ratings found in the store.")

        label = self.config.analysis.global_ticker_label
        return self._recommend(label, records, start, end, attribute_tickers=True)

    # ── Internals ──────────────────────────────────────────────────────────────

    def _analyze_ticker(
        self,
        ticker: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> TradingRecommendation:
        with self._connect() as conn:
            records = RatingRepository(conn).get_by_ticker(ticker)
        if not records:
            raise NotFoundError(f"No ratings found for ticker {ticker}.")
        return self._recommend(ticker, records, start, end, attribute_tickers=False)

    def _load_all_records(self) -> list[RatingRecord]:
        """Drain the store with offset pagination."""
        page_size = self.config.analysis.global_page_size
        records: list[RatingRecord] = []
        offset = 0
        with self._connect() as conn:
            repo = RatingRepository(conn)
            while True:
                page = repo.get_page(offset, page_size)
                records.extend(page)
                if len(page) < page_size:
                    break
                offset += page_size
        logger.debug("Loaded %d records for global analysis", len(records))
        return records

    def _recommend(
        self,
        ticker: str,
        records: list[RatingRecord],
        start: Optional[datetime],
        end: Optional[datetime],
        attribute_tickers: bool,
    ) -> TradingRecommendation:
        in_window = [r for r in records if in_date_range(r.time, start, end)]
        if not in_window:
            raise NotFoundError(
                f"No ratings found for {ticker} in the specified date range."
            )

        # sorted() is stable: same-time records keep store order.
        in_window = sorted(in_window, key=lambda r: r.time)
        points, skipped = build_price_points(in_window, attribute_tickers)
        if skipped:
            logger.debug("%s: skipped %d records with unparseable prices", ticker, skipped)

        result = find_best_trade([p.price for p in points])
        buy = points[result.buy_index]
        sell = points[result.sell_index]

        return TradingRecommendation(
            ticker=ticker,
            buy_price=buy.price,
            sell_price=sell.price,
            max_profit=result.max_profit,
            profit_percentage=result.max_profit / buy.price * 100,
            buy_time=buy.time,
            sell_time=sell.time,
            buy_brokerage=buy.brokerage,
            sell_brokerage=sell.brokerage,
            buy_action=buy.action,
            sell_action=sell.action,
            buy_rating=buy.rating,
            sell_rating=sell.rating,
            buy_ticker=buy.ticker,
            sell_ticker=sell.ticker,
            total_data_points=len(points),
            skipped_data_points=skipped,
            date_range=DateRange(start_date=points[0].time, end_date=points[-1].time),
        )


def build_price_points(
    records: list[RatingRecord],
    attribute_tickers: bool = False,
) -> tuple[list[PricePoint], int]:
    """Convert records to price points, dropping those whose price does not parse.

    Args:
        records: Records already in the desired order.
        attribute_tickers: Copy each record's ticker onto its point.

    Returns:
        ``(points, skipped_count)``.
    """
    points: list[PricePoint] = []
    skipped = 0
    for record in records:
        price = parse_price(record.target_from)
        if price is None:
            skipped += 1
            continue
        points.append(
            PricePoint(
                price=price,
                time=record.time,
                brokerage=record.brokerage,
                action=record.action,
                rating=record.rating_from,
                ticker=record.ticker if attribute_tickers else None,
            )
        )
    return points, skipped


def _clean_ticker(ticker: str) -> str:
    cleaned = ticker.strip()
    if not cleaned:
        raise ValidationError("Ticker must be a non-empty string.")
    return cleaned
