"""
Tests for TradingAnalyzer against a file-backed SQLite store.

What we test
------------
1. analyze_single: recommendation fields, unparseable price skipping,
   inclusive date window, stable same-time ordering, error cases.
2. analyze_multiple: ranking, per-ticker skipping, all-fail and empty input.
3. analyze_global: cross-ticker attribution, GLOBAL label, offset-pagination
   drain across page boundaries.
4. build_price_points: skip counting and ticker attribution.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from rating_trader.analysis.analyzer import TradingAnalyzer, build_price_points
from rating_trader.config import AnalysisConfig
from rating_trader.errors import (
    InsufficientDataError,
    NoProfitableOpportunityError,
    NotFoundError,
    NoValidRecommendationsError,
    ValidationError,
)


@pytest.fixture
def analyzer(app_config) -> TradingAnalyzer:
    return TradingAnalyzer(app_config)


def _series(make_rating, ticker: str, prices: list[str]):
    return [make_rating(ticker=ticker, target_from=p, day=i) for i, p in enumerate(prices)]


# ── analyze_single ─────────────────────────────────────────────────────────────

class TestAnalyzeSingle:
    def test_best_trade_fields(self, analyzer, make_rating, store_ratings):
        records = _series(make_rating, "AAPL", ["$7", "$1", "$5", "$3", "$6", "$4"])
        store_ratings(records)

        rec = analyzer.analyze_single("AAPL")

        assert rec.ticker == "AAPL"
        assert rec.buy_price == 1.0
        assert rec.sell_price == 6.0
        assert rec.max_profit == 5.0
        assert rec.profit_percentage == pytest.approx(500.0)
        assert rec.buy_time == records[1].time
        assert rec.sell_time == records[4].time
        assert rec.buy_brokerage == "Test Securities"
        assert rec.buy_rating == "Neutral"
        assert rec.buy_ticker is None and rec.sell_ticker is None
        assert rec.total_data_points == 6
        assert rec.skipped_data_points == 0
        assert rec.date_range.start_date == records[0].time
        assert rec.date_range.end_date == records[-1].time

    def test_unparseable_prices_are_skipped_and_counted(
        self, analyzer, make_rating, store_ratings
    ):
        store_ratings(_series(make_rating, "MSFT", ["N/A", "$10", "", "$15", "abc"]))

        rec = analyzer.analyze_single("MSFT")

        assert rec.total_data_points == 2
        assert rec.skipped_data_points == 3
        assert rec.max_profit == 5.0

    def test_date_range_covers_parseable_points_only(
        self, analyzer, make_rating, store_ratings
    ):
        records = _series(make_rating, "MSFT", ["bad", "$10", "$15", "bad"])
        store_ratings(records)

        rec = analyzer.analyze_single("MSFT")

        assert rec.date_range.start_date == records[1].time
        assert rec.date_range.end_date == records[2].time

    def test_records_are_sorted_by_time(self, analyzer, make_rating, store_ratings):
        store_ratings([
            make_rating(target_from="$20", day=2),
            make_rating(target_from="$5", day=0),
            make_rating(target_from="$10", day=1),
        ])

        rec = analyzer.analyze_single("AAPL")

        assert (rec.buy_price, rec.sell_price) == (5.0, 20.0)

    def test_same_time_records_keep_store_order(self, analyzer, make_rating, store_ratings):
        store_ratings([
            make_rating(target_from="$10", day=0),
            make_rating(target_from="$5", day=0),
            make_rating(target_from="$8", day=1),
        ])

        rec = analyzer.analyze_single("AAPL")

        assert (rec.buy_price, rec.sell_price) == (5.0, 8.0)

    def test_date_bounds_are_inclusive(self, analyzer, make_rating, store_ratings):
        records = _series(make_rating, "AAPL", ["$50", "$1", "$2", "$3", "$100"])
        store_ratings(records)

        rec = analyzer.analyze_single(
            "AAPL", start_date=records[1].time, end_date=records[3].time
        )

        assert rec.total_data_points == 3
        assert (rec.buy_price, rec.sell_price) == (1.0, 3.0)

    def test_ticker_is_stripped(self, analyzer, make_rating, store_ratings):
        store_ratings(_series(make_rating, "AAPL", ["$1", "$2"]))
        assert analyzer.analyze_single("  AAPL ").ticker == "AAPL"

    def test_unknown_ticker(self, analyzer):
        with pytest.raises(NotFoundError):
            analyzer.analyze_single("ZZZZ")

    def test_empty_ticker(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.analyze_single("   ")

    def test_nothing_in_window(self, analyzer, make_rating, store_ratings):
        records = _series(make_rating, "AAPL", ["$1", "$2"])
        store_ratings(records)

        with pytest.raises(NotFoundError, match="date range"):
            analyzer.analyze_single(
                "AAPL", start_date=records[-1].time + timedelta(seconds=1)
            )

    def test_start_after_end(self, analyzer, make_rating, store_ratings):
        records = _series(make_rating, "AAPL", ["$1", "$2"])
        store_ratings(records)

        with pytest.raises(ValidationError):
            analyzer.analyze_single("AAPL", start_date=records[1].time, end_date=records[0].time)

    def test_single_parseable_point(self, analyzer, make_rating, store_ratings):
        store_ratings(_series(make_rating, "AAPL", ["$1", "N/A"]))
        with pytest.raises(InsufficientDataError):
            analyzer.analyze_single("AAPL")

    def test_falling_prices(self, analyzer, make_rating, store_ratings):
        store_ratings(_series(make_rating, "AAPL", ["$7", "$6", "$4", "$3", "$1"]))
        with pytest.raises(NoProfitableOpportunityError):
            analyzer.analyze_single("AAPL")


# ── analyze_multiple ───────────────────────────────────────────────────────────

class TestAnalyzeMultiple:
    def test_ranked_by_profit_percentage(self, analyzer, make_rating, store_ratings):
        store_ratings(
            _series(make_rating, "A", ["$100", "$105"])       # 5%
            + _series(make_rating, "B", ["$100", "$120"])     # 20%
            + _series(make_rating, "C", ["$10", "$10.50"])    # 5%
        )

        recs = analyzer.analyze_multiple(["A", "B", "C"])

        assert [r.ticker for r in recs] == ["B", "A", "C"]

    def test_failing_tickers_are_skipped(self, analyzer, make_rating, store_ratings, caplog):
        store_ratings(
            _series(make_rating, "UP", ["$1", "$2"])
            + _series(make_rating, "DOWN", ["$2", "$1"])
        )

        with caplog.at_level("WARNING"):
            recs = analyzer.analyze_multiple(["UP", "DOWN", "MISSING"])

        assert [r.ticker for r in recs] == ["UP"]
        assert "DOWN" in caplog.text
        assert "MISSING" in caplog.text

    def test_all_tickers_fail(self, analyzer, make_rating, store_ratings):
        store_ratings(_series(make_rating, "DOWN", ["$2", "$1"]))
        with pytest.raises(NoValidRecommendationsError):
            analyzer.analyze_multiple(["DOWN", "MISSING"])

    def test_empty_ticker_list(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.analyze_multiple([])

    def test_bad_window_rejected_before_analysis(self, analyzer, make_rating):
        later = make_rating(day=1).time
        earlier = make_rating(day=0).time
        with pytest.raises(ValidationError):
            analyzer.analyze_multiple(["AAPL"], start_date=later, end_date=earlier)


# ── analyze_global ─────────────────────────────────────────────────────────────

class TestAnalyzeGlobal:
    def test_buy_and_sell_attributed_to_owning_tickers(
        self, analyzer, make_rating, store_ratings
    ):
        store_ratings([
            make_rating(ticker="AAA", target_from="$50", day=0),
            make_rating(ticker="BBB", target_from="$5", day=1),
            make_rating(ticker="AAA", target_from="$20", day=2),
            make_rating(ticker="CCC", target_from="$40", day=3),
        ])

        rec = analyzer.analyze_global()

        assert rec.ticker == "GLOBAL"
        assert rec.buy_ticker == "BBB"
        assert rec.sell_ticker == "CCC"
        assert rec.max_profit == 35.0
        assert rec.total_data_points == 4

    def test_drains_every_page(self, app_config, make_rating, store_ratings):
        config = app_config.model_copy(update={"analysis": AnalysisConfig(global_page_size=2)})
        analyzer = TradingAnalyzer(config)
        prices = ["$9", "$8", "$7", "$6", "$1", "$30"]
        store_ratings(_series(make_rating, "AAPL", prices))

        rec = analyzer.analyze_global()

        assert rec.total_data_points == len(prices)
        assert (rec.buy_price, rec.sell_price) == (1.0, 30.0)

    def test_drain_with_partial_last_page(self, app_config, make_rating, store_ratings):
        config = app_config.model_copy(update={"analysis": AnalysisConfig(global_page_size=4)})
        analyzer = TradingAnalyzer(config)
        store_ratings(_series(make_rating, "AAPL", ["$1", "$2", "$3", "$4", "$5"]))

        assert analyzer.analyze_global().total_data_points == 5

    def test_date_filter(self, analyzer, make_rating, store_ratings):
        records = _series(make_rating, "AAPL", ["$1", "$10", "$2", "$3"])
        store_ratings(records)

        rec = analyzer.analyze_global(start_date=records[2].time)

        assert (rec.buy_price, rec.sell_price) == (2.0, 3.0)

    def test_empty_store(self, analyzer):
        with pytest.raises(NotFoundError):
            analyzer.analyze_global()


# ── build_price_points ─────────────────────────────────────────────────────────

def test_build_price_points_counts_skips(make_rating):
    records = [
        make_rating(target_from="$1,250.50"),
        make_rating(target_from="n/a"),
        make_rating(ticker="MSFT", target_from=" 3 "),
    ]

    points, skipped = build_price_points(records, attribute_tickers=True)

    assert skipped == 1
    assert [p.price for p in points] == [1250.5, 3.0]
    assert [p.ticker for p in points] == ["AAPL", "MSFT"]
    assert points[0].rating == "Neutral"


def test_build_price_points_without_attribution(make_rating):
    points, _ = build_price_points([make_rating()])
    assert points[0].ticker is None
