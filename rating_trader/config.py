"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``RATING_TRADER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The rating service, the ingestion pipeline and every CLI command receive an
``AppConfig`` instance — never raw dicts or env var lookups scattered
through the codebase. The one exception is the feed bearer token, which is
resolved from the environment by ``FeedConfig.resolve_token()`` so it never
has to be committed to a TOML file.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/rating_trader.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class FeedConfig(BaseModel):
    """External analyst-rating feed settings.

    ``token`` may be set here for tests; in real deployments leave it empty
    and put ``RATING_TRADER_FEED_TOKEN`` in ``.env``.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = "http://localhost:8081"
    list_path: str = "/production/swechallenge/list"
    timeout_seconds: float = 30.0
    token: str = ""

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}.")
        return v

    def resolve_token(self) -> str:
        """Return the configured token, falling back to the environment."""
        return (
            self.token
            or os.environ.get("RATING_TRADER_FEED_TOKEN", "")
            or os.environ.get("FEED_API_TOKEN", "")
        )


class IngestionConfig(BaseModel):
    """Background sync job parameters."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = 100
    deadline_minutes: float = 30.0
    job_type: str = "external_api_sync"

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"chunk_size must be >= 1, got {v}.")
        return v

    @field_validator("deadline_minutes")
    @classmethod
    def validate_deadline(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"deadline_minutes must be positive, got {v}.")
        return v


class AnalysisConfig(BaseModel):
    """Trading analysis settings."""

    model_config = ConfigDict(frozen=True)

    global_page_size: int = 1000
    global_ticker_label: str = "GLOBAL"

    @field_validator("global_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"global_page_size must be >= 1, got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/rating_trader.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Constructed by ``load_config()`` which merges TOML + .env. Tests build
    it directly with keyword overrides.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    feed: FeedConfig = FeedConfig()
    ingestion: IngestionConfig = IngestionConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

# (env var, config section or None for top level, key)
_ENV_OVERRIDES: tuple[tuple[str, Optional[str], str], ...] = (
    ("RATING_TRADER_DB_PATH", "database", "db_path"),
    ("RATING_TRADER_FEED_BASE_URL", "feed", "base_url"),
    ("RATING_TRADER_LOG_LEVEL", "logging", "level"),
    ("RATING_TRADER_DEBUG", None, "debug"),
)

_TRUTHY = ("1", "true", "yes")


def _find_project_root() -> Path:
    """Nearest ancestor of this file holding ``pyproject.toml``."""
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents[:4]):
        if (candidate / "pyproject.toml").exists():
            return candidate
    return here.parent


def _read_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``. A ``local.toml`` next to
            it, if present, is merged on top.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    config_path = Path(config_path) if config_path else root / "config" / "default.toml"
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    raw = _read_toml(config_path)
    local_path = config_path.parent / "local.toml"
    if local_path.exists():
        raw = _deep_merge(raw, _read_toml(local_path))

    return _build_app_config(_apply_env_overrides(raw))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    merged = dict(base)
    for key, val in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(val, dict):
            merged[key] = _deep_merge(current, val)
        else:
            merged[key] = val
    return merged


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply the non-empty ``RATING_TRADER_*`` variables listed in ``_ENV_OVERRIDES``."""
    for env_name, section, key in _ENV_OVERRIDES:
        value: Any = os.environ.get(env_name)
        if not value:
            continue
        if key == "debug":
            value = value.lower() in _TRUTHY
        target = raw.setdefault(section, {}) if section else raw
        target[key] = value
    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map the merged TOML dict onto ``AppConfig``."""
    sections = {
        "database": DatabaseConfig,
        "feed": FeedConfig,
        "ingestion": IngestionConfig,
        "analysis": AnalysisConfig,
        "logging": LoggingConfig,
    }
    debug = raw.get("debug", raw.get("project", {}).get("debug", False))
    return AppConfig(
        debug=debug,
        **{name: model(**raw.get(name, {})) for name, model in sections.items()},
    )
