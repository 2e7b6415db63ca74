"""
rating-trader — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute the action through ``RatingService``.
  5. Report the result to stdout (``--json`` for machine-readable output).

Any ``RatingTraderError`` is reported as ``[ERROR] ...`` on stderr with exit
code 1.

Install and run::

    pip install -e .
    rating-trader --help
    rating-trader init-db
    rating-trader validate-config
    rating-trader sync
    rating-trader job-status <job-id>
    rating-trader ratings --page 2 --page-size 50
    rating-trader latest AAPL
    rating-trader analyze AAPL --start-date 2025-01-01 --end-date 2025-03-31
    rating-trader analyze-multi AAPL MSFT NVDA
    rating-trader analyze-global --json
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="rating-trader",
    help="Analyst rating ingestion and trading-window analysis CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from rating_trader.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from rating_trader.utils.logging import configure_logging
    configure_logging(config.logging)


def _build_service(config_path: Optional[str], db_path: Optional[str]):
    """Load config, configure logging and return a ``RatingService``."""
    from rating_trader.service import RatingService

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    return RatingService(config, db_path=db_path)


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"[ERROR] {exc}", err=True)
    return typer.Exit(code=1)


def _parse_window(start_date: Optional[str], end_date: Optional[str]):
    """Parse ``--start-date`` / ``--end-date``; the end date covers its whole day."""
    from rating_trader.utils.time_utils import parse_cli_date

    return parse_cli_date(start_date), parse_cli_date(end_date, end_of_day=True)


def _echo_recommendation(rec) -> None:
    typer.echo(f"  Ticker:        {rec.ticker}")
    buy_owner = f" [{rec.buy_ticker}]" if rec.buy_ticker else ""
    sell_owner = f" [{rec.sell_ticker}]" if rec.sell_ticker else ""
    typer.echo(
        f"  Buy:           {rec.buy_price:.2f} @ {rec.buy_time.isoformat()}"
        f"{buy_owner} ({rec.buy_brokerage}, {rec.buy_rating})"
    )
    typer.echo(
        f"  Sell:          {rec.sell_price:.2f} @ {rec.sell_time.isoformat()}"
        f"{sell_owner} ({rec.sell_brokerage}, {rec.sell_rating})"
    )
    typer.echo(f"  Profit:        {rec.max_profit:.2f} ({rec.profit_percentage:.2f}%)")
    typer.echo(
        f"  Data points:   {rec.total_data_points} used, {rec.skipped_data_points} skipped"
    )
    typer.echo(
        f"  Window:        {rec.date_range.start_date.isoformat()} → "
        f"{rec.date_range.end_date.isoformat()}"
    )


def _echo_rating(record) -> None:
    typer.echo(
        f"  #{record.rating_id} {record.ticker:<6} {record.time.isoformat()} | "
        f"{record.brokerage} | {record.action} | "
        f"{record.rating_from} → {record.rating_to} | "
        f"{record.target_from} → {record.target_to}"
    )


def _echo_json(payload) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Initialize the SQLite database and apply the schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    """
    from rating_trader.db.connection import get_connection
    from rating_trader.db.schema import ALL_TABLE_NAMES, apply_schema
    from rating_trader.errors import RatingTraderError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    try:
        with get_connection(
            target_path,
            wal_mode=config.database.wal_mode,
            busy_timeout_ms=config.database.busy_timeout_ms,
        ) as conn:
            apply_schema(conn)
    except RatingTraderError as exc:
        raise _fail(exc)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Feed URL:         {config.feed.base_url}{config.feed.list_path}")
    typer.echo(f"  Feed token set:   {bool(config.feed.resolve_token())}")
    typer.echo(f"  Chunk size:       {config.ingestion.chunk_size}")
    typer.echo(f"  Sync deadline:    {config.ingestion.deadline_minutes} min")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(exclude={"feed": {"token"}}), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("sync")
def sync(
    poll_interval: float = typer.Option(
        1.0,
        "--poll-interval",
        help="Seconds between job status checks.",
    ),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Drain the external rating feed into the database.

    \b
    Starts a background sync job and follows it until it finishes:
      pending → processing (progress per chunk) → completed | failed

    The sync thread does not outlive this process, so the command stays in
    the foreground until the job reaches a terminal state or its deadline.
    """
    from rating_trader.errors import RatingTraderError
    from rating_trader.models.job import JobStatus

    service = _build_service(config_path, db_path)

    try:
        job = service.trigger_sync()
        typer.echo(f"Sync job started: {job.job_id}")

        thread = service.sync_thread(job.job_id)
        last_seen = None
        while True:
            job = service.get_job(job.job_id)
            snapshot = (job.status, job.progress, job.total_items)
            if snapshot != last_seen:
                typer.echo(
                    f"  {job.status.value:<10} {job.progress}/{job.total_items} "
                    f"({job.progress_pct:.0f}%)"
                )
                last_seen = snapshot
            if job.is_terminal or thread is None or not thread.is_alive():
                break
            time.sleep(poll_interval)

        job = service.get_job(job.job_id)
    except RatingTraderError as exc:
        raise _fail(exc)

    if job.status == JobStatus.COMPLETED:
        typer.echo(f"[OK] Sync complete: {job.progress} ratings stored.")
    elif job.status == JobStatus.FAILED:
        typer.echo(f"[ERROR] Sync failed: {job.error_message}", err=True)
        raise typer.Exit(code=1)
    else:
        typer.echo(
            f"[ERROR] Sync stopped with job {job.status.value} "
            f"at {job.progress}/{job.total_items}.",
            err=True,
        )
        raise typer.Exit(code=1)


@app.command("job-status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID printed by `sync`."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Show the status and progress of a sync job."""
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        job = service.get_job(job_id)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json(job.model_dump(mode="json"))
        return

    typer.echo(f"  Job:       {job.job_id} ({job.job_type})")
    typer.echo(f"  Status:    {job.status.value}")
    typer.echo(f"  Progress:  {job.progress}/{job.total_items} ({job.progress_pct:.0f}%)")
    typer.echo(f"  Created:   {job.created_at.isoformat()}")
    typer.echo(f"  Updated:   {job.updated_at.isoformat()}")
    if job.completed_at:
        typer.echo(f"  Completed: {job.completed_at.isoformat()}")
    if job.error_message:
        typer.echo(f"  Error:     {job.error_message}")


@app.command("ratings")
def ratings(
    ticker: Optional[str] = typer.Option(
        None,
        "--ticker",
        help="Show every rating for one ticker instead of a page.",
    ),
    page: int = typer.Option(1, "--page", help="Page number (1-based)."),
    page_size: int = typer.Option(20, "--page-size", help="Ratings per page (1-100)."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """List stored ratings, paginated or by ticker."""
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        if ticker:
            records = service.get_ratings_by_ticker(ticker)
            if as_json:
                _echo_json([r.model_dump(mode="json") for r in records])
                return
            typer.echo(f"{len(records)} rating(s) for {ticker}:")
            for record in records:
                _echo_rating(record)
            return

        result = service.list_ratings(page=page, page_size=page_size)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json(result.model_dump(mode="json"))
        return

    typer.echo(
        f"Page {result.page}/{result.total_pages} "
        f"({result.total_count} ratings, {result.page_size} per page)"
    )
    for record in result.data:
        _echo_rating(record)
    if result.has_next:
        typer.echo(f"  ... next: --page {result.page + 1}")


@app.command("latest")
def latest(
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Show the most recent rating for a ticker."""
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        record = service.get_latest_rating(ticker)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json(record.model_dump(mode="json"))
        return
    _echo_rating(record)


@app.command("analyze")
def analyze(
    ticker: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL."),
    start_date: Optional[str] = typer.Option(
        None, "--start-date", help="Window start (YYYY-MM-DD, inclusive)."
    ),
    end_date: Optional[str] = typer.Option(
        None, "--end-date", help="Window end (YYYY-MM-DD, inclusive)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Find the best buy/sell window for one ticker."""
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        start, end = _parse_window(start_date, end_date)
        rec = service.analyze_single(ticker, start, end)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json(rec.model_dump(mode="json"))
        return
    _echo_recommendation(rec)


@app.command("analyze-multi")
def analyze_multi(
    tickers: list[str] = typer.Argument(..., help="Ticker symbols, e.g. AAPL MSFT."),
    start_date: Optional[str] = typer.Option(
        None, "--start-date", help="Window start (YYYY-MM-DD, inclusive)."
    ),
    end_date: Optional[str] = typer.Option(
        None, "--end-date", help="Window end (YYYY-MM-DD, inclusive)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Analyze several tickers and rank them by profit percentage.

    Tickers without a recommendation are skipped (see the log for why).
    """
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        start, end = _parse_window(start_date, end_date)
        recs = service.analyze_multiple(tickers, start, end)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json([r.model_dump(mode="json") for r in recs])
        return

    typer.echo(f"{len(recs)} of {len(tickers)} ticker(s) with a recommendation:")
    for rank, rec in enumerate(recs, start=1):
        typer.echo("")
        typer.echo(f"#{rank}")
        _echo_recommendation(rec)


@app.command("analyze-global")
def analyze_global(
    start_date: Optional[str] = typer.Option(
        None, "--start-date", help="Window start (YYYY-MM-DD, inclusive)."
    ),
    end_date: Optional[str] = typer.Option(
        None, "--end-date", help="Window end (YYYY-MM-DD, inclusive)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    db_path: Optional[str] = typer.Option(
        None, "--db-path", help="Override DB path from config."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to TOML config file."
    ),
) -> None:
    """Find the best buy/sell window across every stored rating.

    All tickers share one timeline; the buy and sell may be different stocks.
    """
    from rating_trader.errors import RatingTraderError

    service = _build_service(config_path, db_path)
    try:
        start, end = _parse_window(start_date, end_date)
        rec = service.analyze_global(start, end)
    except RatingTraderError as exc:
        raise _fail(exc)

    if as_json:
        _echo_json(rec.model_dump(mode="json"))
        return
    _echo_recommendation(rec)


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
