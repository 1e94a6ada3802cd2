"""
Unified Logging Configuration

This module sets up the logging system shared by the dispatcher, the candle
aggregator and the feed facade. All modules should obtain their logger from
here instead of calling logging.getLogger() directly.

Usage:
    from core.logging import logger, get_logger

    logger.info("Feed started")
    log = get_logger(__name__)
    log.debug("Folded trade into BTC-LTC")

Log Levels used by this project:
    DEBUG    - Per-trade and per-bar detail (e.g., "Folded trade BTC-LTC @ 0.0123")
    INFO     - Lifecycle events (e.g., "Candle aggregator started (interval=60s)")
    WARNING  - Isolated observer or bar sink failures
    ERROR    - Push messages that could not be decoded into trades

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


LOGGER_NAME = "candlestream"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Feed started")
        2024-01-01 12:00:00 [INFO] candlestream: Feed started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance named "candlestream.<name>"

    Example:
        >>> log = get_logger("services.candle_aggregator")
        >>> log.name
        'candlestream.services.candle_aggregator'
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_bar(candle) -> None:
    """
    Log a finalized bar with consistent formatting.

    Args:
        candle: Finalized Candle handed to a bar sink

    Example:
        >>> log_bar(candle)
        [DEBUG] Bar: BTC-LTC: 2024-01-01T12:00:00Z|O:10.00000000|H:12.00000000|...
    """
    logger.debug(f"Bar: {candle}")


def log_feed_event(event: str, market: str = None, details: str = None) -> None:
    """
    Log a push feed event with consistent formatting.

    Args:
        event: Event type (e.g., "decoded", "error")
        market: Market name (optional)
        details: Additional details (optional)

    Example:
        >>> log_feed_event("error", "BTC-LTC", "invalid trade type: HOLD")
        [ERROR] Feed: error | Market: BTC-LTC | invalid trade type: HOLD
    """
    market_str = f" | Market: {market}" if market else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.DEBUG
    logger.log(level, f"Feed: {event}{market_str}{details_str}")


logger.debug("Logging system initialized")
