"""
Time Utilities

This module provides the timestamp and interval helpers shared by the push
feed decoder and the candle aggregator.

- Push feed fills carry ISO-8601 timestamps without a zone and with a
  variable number of fractional digits (e.g., "2017-11-17T16:51:00.12").
- Candle windows are configured as short strings such as "1m" or "5m".
- A finalized candle is stamped with the instant its window opened.

All datetimes returned here are timezone-aware (UTC).
"""

import re
from datetime import datetime, timedelta, timezone
from dateutil import parser as dateparser


_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")

_INTERVAL_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


def parse_interval(value: str) -> timedelta:
    """
    Convert an interval string to a timedelta.

    Args:
        value: Amount followed by a unit: s (seconds), m (minutes),
               h (hours) or d (days). Example: "1m", "5m", "30s", "1h"

    Returns:
        timedelta: The interval duration

    Raises:
        ValueError: If the unit is unknown or the amount is not positive

    Examples:
        >>> parse_interval("1m")
        datetime.timedelta(seconds=60)
        >>> parse_interval("4h")
        datetime.timedelta(seconds=14400)
    """
    match = _INTERVAL_RE.match(value or "")
    if not match:
        raise ValueError(
            f"Invalid interval: '{value}'. Expected a number followed by one of: "
            f"{', '.join(_INTERVAL_UNITS)}"
        )

    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Interval must be positive: '{value}'")

    return timedelta(seconds=amount * _INTERVAL_UNITS[match.group(2)])


def window_open(now: datetime, interval: timedelta) -> datetime:
    """
    Get the open instant of the window that closes at `now`.

    The aggregator flushes on a timer, so the window that just ended began
    exactly one interval before the flush.

    Example:
        >>> now = datetime(2024, 1, 1, 12, 1, tzinfo=timezone.utc)
        >>> window_open(now, timedelta(minutes=1))
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    return now - interval


def parse_fill_timestamp(value: str) -> datetime:
    """
    Parse a push feed fill timestamp into a UTC datetime.

    Args:
        value: ISO-8601 timestamp, e.g. "2017-11-17T16:51:00.123"

    Returns:
        datetime: Timezone-aware datetime. Naive timestamps are assumed UTC.

    Raises:
        ValueError: If the timestamp cannot be parsed
    """
    try:
        parsed = dateparser.isoparse(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"time parse failed: {value!r}: {e}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    This is the default clock of the candle aggregator.
    """
    return datetime.now(timezone.utc)
