"""
Trade Feed

Entry point that ties the pieces together: decoded push messages go in,
trades fan out to registered observers, and candle aggregators subscribed to
the same dispatcher emit bars on their own timers.

Usage:
    feed = TradeFeed(error_handler=lambda e: print(f"feed error: {e}"))
    feed.register(lambda trade: print(trade))
    await feed.process_candles(on_bar=print)  # interval from settings.candle_interval

    # for every message received from the push transport:
    feed.process_message(message)

    await feed.close()
"""

from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from core.config import settings
from core.logging import get_logger, log_feed_event
from core.utils.tasks import BackgroundTasks
from services.candle_aggregator import BarHandler, CandleAggregator
from services.exchange_update import ExchangeUpdate, TradeDecodeError, iter_exchange_updates
from services.trade_dispatcher import TradeDispatcher, TradeObserver


ErrHandler = Callable[[Exception], Any]


class TradeFeed:
    """
    Decodes push messages and routes the resulting trades.

    Attributes:
        dispatcher: The TradeDispatcher every trade is delivered through
        error_handler: Optional callback receiving decode errors and
                       observer/bar sink failures
    """

    def __init__(self, error_handler: Optional[ErrHandler] = None) -> None:
        self.error_handler = error_handler
        self._errors = BackgroundTasks()
        self.dispatcher = TradeDispatcher(BackgroundTasks(error_handler=error_handler))
        self._aggregators: List[CandleAggregator] = []
        self._logger = get_logger(__name__)

    def register(self, observer: TradeObserver) -> None:
        """Register a trade observer (see TradeDispatcher.register)."""
        self.dispatcher.register(observer)

    # ============================================
    # Message Processing
    # ============================================

    def process_message(self, message: Dict[str, Any]) -> bool:
        """
        Decode a push message and dispatch every fill it contains.

        Processing stops at the first argument that fails to decode; trades
        from arguments already processed stay dispatched.

        Args:
            message: Push message with a list of hub invocations under "M"

        Returns:
            bool: True if every argument was processed, False otherwise
        """
        for arg in iter_exchange_updates(message):
            try:
                update = ExchangeUpdate.decode(arg)
                trades = update.trades()
            except TradeDecodeError as e:
                market = arg.get("MarketName") if isinstance(arg, dict) else None
                log_feed_event("error", market, str(e))
                self._report(e)
                return False

            for trade in trades:
                self.dispatcher.dispatch(trade)

            log_feed_event("decoded", update.market_name, f"{len(trades)} trade(s)")

        return True

    def _report(self, error: Exception) -> None:
        if self.error_handler is not None:
            self._errors.spawn(self.error_handler, error, name="feed_error_handler")

    # ============================================
    # Candle Processing
    # ============================================

    async def process_candles(
        self,
        on_bar: BarHandler,
        interval: Optional[timedelta] = None
    ) -> CandleAggregator:
        """
        Start producing candles for every market seen on this feed.

        Args:
            on_bar: Bar sink invoked once per market per interval
            interval: Candle window width and flush period
                      (defaults to the configured CANDLE_INTERVAL)

        Returns:
            CandleAggregator: The running aggregator
        """
        if interval is None:
            interval = settings.candle_interval_delta

        aggregator = CandleAggregator(
            interval,
            on_bar,
            tasks=BackgroundTasks(error_handler=self.error_handler)
        )
        aggregator.subscribe(self.dispatcher)
        await aggregator.start()
        self._aggregators.append(aggregator)
        self._logger.info(f"Candle processing started ({len(self._aggregators)} aggregator(s))")
        return aggregator

    async def close(self) -> None:
        """Stop every aggregator started by this feed and wait for pending deliveries."""
        for aggregator in self._aggregators:
            await aggregator.stop()

        await self.dispatcher.drain()
        for aggregator in self._aggregators:
            await aggregator.drain()
        await self._errors.drain()

        self._aggregators.clear()
        self._logger.info("Trade feed closed")
