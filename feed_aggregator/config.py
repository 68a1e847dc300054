"""Configuration for feed_aggregator.

All settings come from environment variables; invalid numeric values fall
back to their defaults instead of failing startup.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_REFRESH_SECONDS = 3 * 60
DEFAULT_PAGE_SIZE = 10
DEFAULT_FETCH_TIMEOUT = 30.0


@dataclass
class ServerConfig:
    """Runtime configuration for the server and refresh loop."""

    name: str = "feed_aggregator"
    log_level: str = "INFO"
    db_path: Path = Path.home() / ".feed_aggregator" / "feed_aggregator.db"
    refresh_seconds: int = DEFAULT_REFRESH_SECONDS
    page_size: int = DEFAULT_PAGE_SIZE
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT


def _positive_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _positive_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config() -> ServerConfig:
    """Build a ServerConfig from the environment."""
    db_path = os.getenv("FEED_AGGREGATOR_DB_PATH")

    return ServerConfig(
        name=os.getenv("FEED_AGGREGATOR_NAME", "feed_aggregator"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        db_path=Path(db_path) if db_path else ServerConfig.db_path,
        refresh_seconds=_positive_int("FEED_REFRESH_SECONDS", DEFAULT_REFRESH_SECONDS),
        page_size=_positive_int("FEED_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        fetch_timeout=_positive_float("FEED_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
    )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
