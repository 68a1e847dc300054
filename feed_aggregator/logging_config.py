"""Logging setup for feed_aggregator.

Logs go to stderr so the STDIO transport keeps stdout for protocol traffic.
"""

import logging
import sys

from feed_aggregator.config import ServerConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("feed_aggregator")


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the package logger from the server config."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
