"""
Logging setup for rating-trader.

``configure_logging(config)`` is called once by the CLI before any sync or
analysis work. Library modules only ever do ``logging.getLogger(__name__)``.

Sync jobs run on background threads, so every line carries the thread name,
and records logged with ``extra={"job_id": ...}`` show the job they belong to:

    2026-02-24T15:00:00Z [INFO] sync-3f2a9c1e rating_trader.pipeline.sync job=3f2a9c1e-...: ...

With ``json_format = true`` each record becomes one JSON object instead, with
``extra=`` fields lifted to the top level::

    {"ts": "...", "level": "INFO", "logger": "...", "thread": "sync-3f2a9c1e", "msg": "...", "job_id": "..."}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rating_trader.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s%(job_tag)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_QUIET_LOGGERS = ("httpx", "httpcore")

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_BUILTIN_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "job_tag"}


class _JobTagFilter(logging.Filter):
    """Adds ``job_tag`` (`` job=<id>`` or empty) for the text format."""

    def filter(self, record: logging.LogRecord) -> bool:
        job_id = getattr(record, "job_id", None)
        record.job_tag = f" job={job_id}" if job_id else ""
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict = {
            "ts": created.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        payload.update(
            (key, val)
            for key, val in record.__dict__.items()
            if key not in _BUILTIN_ATTRS and not key.startswith("_")
        )
        return json.dumps(payload, default=str)


def _make_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Configure the root logger from a ``LoggingConfig`` instance.

    Console output goes to stderr so ``--json`` command output on stdout stays
    parseable. A file handler is added when ``config.log_file`` is non-empty.

    Args:
        config: Logging configuration section from ``AppConfig``.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = _make_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    job_tags = _JobTagFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(job_tags)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
