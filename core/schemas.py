"""
Trade and Candle Schemas

This module defines the Pydantic models that flow through the candle pipeline.

Models:
    - TradeSide: Buy or sell
    - Trade: One fill reported by the push feed (immutable)
    - Candle: OHLCV accumulator for one market and one window (mutable)
    - Tick: One historical candle as reported by the REST API

Key Principle:
    A Trade is a fact. The aggregator folds every delivered trade into its
    market's Candle and never validates or deduplicates trades; that is the
    responsibility of whoever produces them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Optional

from pydantic import BaseModel, Field, ConfigDict


def _fmt(value: Optional[float]) -> str:
    return f"{value:.8f}" if value is not None else "<unset>"


# ============================================
# Trade Schema
# ============================================

class TradeSide(str, Enum):
    """Side of a trade: either buy or sell."""

    BUY = "BUY"
    SELL = "SELL"

    def __str__(self) -> str:
        return self.value


class Trade(BaseModel):
    """
    Trade Data Model

    Represents one fill on a market, as decoded from the push feed.

    Attributes:
        base_currency: Currency the market is priced in (e.g., "BTC")
        market_currency: Currency being traded (e.g., "LTC")
        side: BUY or SELL
        price: Execution price
        quantity: Executed quantity
        timestamp: Exchange-reported execution time

    Example:
        >>> trade = Trade(
        ...     base_currency="BTC",
        ...     market_currency="LTC",
        ...     side=TradeSide.BUY,
        ...     price=0.0123,
        ...     quantity=4.5,
        ...     timestamp=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        ... )
        >>> trade.market
        'BTC-LTC'

    Notes:
        - Prices and quantities are not range-checked (see module docstring)
        - Currency case is preserved in the market name
    """

    base_currency: str = Field(..., description="Base currency (e.g., BTC)")
    market_currency: str = Field(..., description="Market currency (e.g., LTC)")
    side: TradeSide = Field(..., description="Trade side: BUY or SELL")
    price: float = Field(..., description="Execution price")
    quantity: float = Field(..., description="Executed quantity")
    timestamp: datetime = Field(..., description="Exchange-reported execution time")

    model_config = ConfigDict(frozen=True)

    @property
    def market(self) -> str:
        """Market identifier in BASE-MARKET form (e.g., "BTC-LTC")."""
        return f"{self.base_currency}-{self.market_currency}"

    def __str__(self) -> str:
        return (
            f"{self.market}: {self.side} | {self.timestamp} | "
            f"quantity: {_fmt(self.quantity)} | price: {_fmt(self.price)}"
        )


# ============================================
# Candle (OHLCV) Schema
# ============================================

class Candle(BaseModel):
    """
    Open-High-Low-Close-Volume accumulator for one market and one window.

    A Candle is created on the first trade seen for a market, folded by every
    later trade in the same window, stamped with the window-open time when
    flushed, and then replaced by a reseeded Candle for the next window.

    Attributes:
        market: Market identifier (e.g., "BTC-LTC")
        time: Window-open instant, set when the candle is flushed
        open: First price of the window (None until a price has been folded)
        high: Highest folded price
        low: Lowest folded price
        close: Most recently folded price
        volume: Sum of folded quantities

    Invariants while accumulating:
        low <= open, close and every folded price <= high
    """

    market: str
    time: Optional[datetime] = None
    open: Optional[float] = None
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: float = 0.0

    @classmethod
    def from_trade(cls, trade: Trade) -> "Candle":
        """Create the first candle of a market from its first trade."""
        return cls(
            market=trade.market,
            open=trade.price,
            high=trade.price,
            low=trade.price,
            close=trade.price,
            volume=trade.quantity,
        )

    def fold(self, trade: Trade) -> None:
        """
        Fold one trade into this candle.

        A price equal to the running high or low leaves it untouched. `open`
        is only assigned when it has never been set, so a genuine zero open
        price is kept.
        """
        if self.open is None:
            self.open = trade.price

        if trade.price > self.high:
            self.high = trade.price

        if trade.price < self.low:
            self.low = trade.price

        self.close = trade.price
        self.volume += trade.quantity

    def reseeded(self) -> "Candle":
        """
        Create the candle for the next window.

        All four prices carry over the last close and volume starts at zero,
        so a market without trades in the next window still flushes a
        degenerate bar.
        """
        return Candle(
            market=self.market,
            open=self.close,
            high=self.close,
            low=self.close,
            close=self.close,
            volume=0.0,
        )

    def __str__(self) -> str:
        stamp = self.time.strftime("%Y-%m-%dT%H:%M:%SZ") if self.time else "<open>"
        return (
            f"{self.market}: {stamp}|O:{_fmt(self.open)}|H:{_fmt(self.high)}"
            f"|L:{_fmt(self.low)}|C:{_fmt(self.close)}|V:{_fmt(self.volume)}"
        )


# ============================================
# Historical Tick Schema
# ============================================

class Tick(BaseModel):
    """
    Historical candle as returned by the REST tick endpoint.

    Example payload:
        {
          "O": 0.00061830,
          "H": 0.00061830,
          "L": 0.00061798,
          "C": 0.00061798,
          "V": 1220.69744635,
          "T": "2017-11-17T16:51:00",
          "BV": 0.75448216
        }
    """

    open: float = Field(..., alias="O")
    high: float = Field(..., alias="H")
    low: float = Field(..., alias="L")
    close: float = Field(..., alias="C")
    volume: float = Field(..., alias="V")
    timestamp: str = Field(..., alias="T")
    base_volume: float = Field(0.0, alias="BV")

    model_config = ConfigDict(populate_by_name=True)

    TIME_LAYOUT: ClassVar[str] = "%Y-%m-%dT%H:%M:%S"

    def time(self) -> datetime:
        """
        Parse the tick timestamp into a UTC datetime.

        Raises:
            ValueError: If the timestamp does not match YYYY-MM-DDTHH:MM:SS
        """
        try:
            parsed = datetime.strptime(self.timestamp, self.TIME_LAYOUT)
        except ValueError as e:
            raise ValueError(f"time parse failed: {e}")
        return parsed.replace(tzinfo=timezone.utc)

    def to_candle(self, market: str) -> Candle:
        """Convert this tick into a Candle for `market`, stamped with the tick time."""
        return Candle(
            market=market,
            time=self.time(),
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )

    def __str__(self) -> str:
        return (
            f"{self.timestamp}: O:{_fmt(self.open)}, H:{_fmt(self.high)}, "
            f"L:{_fmt(self.low)}, C:{_fmt(self.close)}, V:{_fmt(self.volume)}"
        )


# ============================================
# Helper Functions
# ============================================

def validate_candle_consistency(candle: Candle) -> bool:
    """
    Validate that candle data is logically consistent.

    Returns:
        True if valid

    Raises:
        ValueError: If high < low, or open/close fall outside [low, high]
    """
    if candle.high < candle.low:
        raise ValueError(f"High ({candle.high}) cannot be less than Low ({candle.low})")

    for label, price in (("Open", candle.open), ("Close", candle.close)):
        if price is None:
            continue
        if price > candle.high or price < candle.low:
            raise ValueError(
                f"{label} ({price}) must be within Low ({candle.low}) and High ({candle.high})"
            )

    return True
