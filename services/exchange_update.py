"""
Exchange Update Decoding

Turns the payload of push feed messages into Trade objects. Only payload
decoding lives here; connecting, handshaking and framing belong to the feed
transport.

A push message carries a list of hub invocations. Invocations of
`updateExchangeState` carry exchange updates, one per argument:

    {
      "M": [
        {
          "H": "CoreHub",
          "M": "updateExchangeState",
          "A": [
            {
              "MarketName": "BTC-LTC",
              "Nounce": 12345,
              "Buys": [{"Type": 0, "Rate": 0.0123, "Quantity": 10.0}],
              "Sells": [],
              "Fills": [
                {"OrderType": "BUY", "Rate": 0.0123, "Quantity": 1.5,
                 "TimeStamp": "2017-11-17T16:51:00.123"}
              ]
            }
          ]
        }
      ]
    }

Only fills become trades; buy and sell order book deltas are decoded but
otherwise ignored.
"""

from datetime import datetime
from typing import Any, Dict, Iterator, List

from pydantic import BaseModel, Field, ConfigDict, ValidationError

from core.schemas import Trade, TradeSide
from core.utils.time import parse_fill_timestamp


UPDATE_EXCHANGE_STATE = "updateExchangeState"


class TradeDecodeError(ValueError):
    """Raised when a push message cannot be turned into trades."""


class TradeOrder(BaseModel):
    """Order book delta (buy or sell side)."""

    type: int = Field(..., alias="Type")
    rate: float = Field(..., alias="Rate")
    quantity: float = Field(..., alias="Quantity")

    model_config = ConfigDict(populate_by_name=True)


class TradeFill(BaseModel):
    """A single fill within an exchange update."""

    order_type: str = Field(..., alias="OrderType")
    rate: float = Field(..., alias="Rate")
    quantity: float = Field(..., alias="Quantity")
    timestamp: str = Field(..., alias="TimeStamp")

    model_config = ConfigDict(populate_by_name=True)

    def side(self) -> TradeSide:
        """
        Map the fill order type to a TradeSide.

        Raises:
            TradeDecodeError: If the order type is neither BUY nor SELL
        """
        try:
            return TradeSide(self.order_type)
        except ValueError:
            raise TradeDecodeError(f"invalid trade type: {self.order_type}")

    def time(self) -> datetime:
        """
        Parse the fill timestamp.

        Raises:
            TradeDecodeError: If the timestamp cannot be parsed
        """
        try:
            return parse_fill_timestamp(self.timestamp)
        except ValueError as e:
            raise TradeDecodeError(f"time parse error: {e}")


class ExchangeUpdate(BaseModel):
    """One market's state delta from the push feed."""

    market_name: str = Field(..., alias="MarketName")
    nounce: int = Field(0, alias="Nounce")
    buys: List[TradeOrder] = Field(default_factory=list, alias="Buys")
    sells: List[TradeOrder] = Field(default_factory=list, alias="Sells")
    fills: List[TradeFill] = Field(default_factory=list, alias="Fills")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def decode(cls, data: Any) -> "ExchangeUpdate":
        """
        Validate a raw exchange update argument.

        Raises:
            TradeDecodeError: If the argument does not look like an exchange update
        """
        try:
            if isinstance(data, (str, bytes)):
                return cls.model_validate_json(data)
            return cls.model_validate(data)
        except ValidationError as e:
            raise TradeDecodeError(f"exchange update decode failed: {e}")

    def currencies(self) -> tuple:
        """
        Split the market name into (base currency, market currency).

        Raises:
            TradeDecodeError: If the market name is not exactly BASE-MARKET
        """
        parts = self.market_name.split("-")
        if len(parts) != 2 or not all(parts):
            raise TradeDecodeError(f"invalid market name: {self.market_name!r}")
        return parts[0], parts[1]

    def trades(self) -> List[Trade]:
        """
        Convert every fill into a Trade.

        Decoding is all-or-nothing: the first bad fill raises and no trades
        are returned for this update.

        Raises:
            TradeDecodeError: On an invalid market name, order type or timestamp
        """
        base, market = self.currencies()
        return [
            Trade(
                base_currency=base,
                market_currency=market,
                side=fill.side(),
                price=fill.rate,
                quantity=fill.quantity,
                timestamp=fill.time(),
            )
            for fill in self.fills
        ]


def iter_exchange_updates(message: Dict[str, Any]) -> Iterator[Any]:
    """
    Yield the raw arguments of every updateExchangeState invocation in a push message.

    Invocations of other hub methods are skipped.
    """
    for invocation in message.get("M") or []:
        if not isinstance(invocation, dict):
            continue
        if invocation.get("M") != UPDATE_EXCHANGE_STATE:
            continue
        for arg in invocation.get("A") or []:
            yield arg
