"""
Candle Aggregator

Folds trades into one in-progress OHLCV candle per market and, on a fixed
wall-clock timer, hands every market's finalized candle to a bar sink and
rolls the market over into the next window.

Window lifecycle per market:
    no candle -> accumulating -> (timer fires) -> flushed and reseeded

- A market's first trade creates its candle (O=H=L=C=price, V=quantity).
- Each flush stamps the candle with the window-open time (now - interval),
  hands it to the sink on its own task, and replaces it with a candle whose
  prices all equal the last close and whose volume is zero. A market that
  trades once therefore emits a bar every interval from then on.
- Markets first seen during a window are flushed at the end of that window.

Locking:
    One lock guards the market -> candle map. `on_trade` holds it for a
    single insert-or-fold, `flush` for the snapshot and reseed. The bar sink
    always runs outside the lock. Nothing awaits while the lock is held, so
    `on_trade` may be called from any thread.
"""

import asyncio
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_logger, log_bar
from core.schemas import Candle, Trade
from core.utils.tasks import BackgroundTasks
from core.utils.time import current_utc_datetime, window_open


BarHandler = Callable[[Candle], Any]


class CandleAggregator:
    """
    Per-market OHLCV aggregation with timer-driven flushing.

    Attributes:
        interval: Window width; also the timer period
        on_bar: Bar sink invoked once per market per flush

    Example:
        >>> aggregator = CandleAggregator(timedelta(minutes=1), on_bar=print)
        >>> aggregator.subscribe(dispatcher)
        >>> await aggregator.start()
    """

    def __init__(
        self,
        interval: timedelta,
        on_bar: BarHandler,
        clock: Callable[[], Any] = current_utc_datetime,
        tasks: Optional[BackgroundTasks] = None
    ):
        """
        Initialize the aggregator.

        Args:
            interval: Window width and timer period (fixed for the lifetime)
            on_bar: Plain callable or coroutine function receiving each bar
            clock: Returns the current time; used to stamp flushed bars
            tasks: Task spawner for bar sink invocations
        """
        if interval <= timedelta(0):
            raise ValueError(f"Interval must be positive: {interval}")

        self.interval = interval
        self.on_bar = on_bar
        self._clock = clock
        self._tasks = tasks or BackgroundTasks()

        self._candles: Dict[str, Candle] = {}
        self._candles_lock = threading.Lock()

        self._timer: Optional[asyncio.Task] = None
        self._logger = get_logger(__name__)

    # ============================================
    # Trade Ingestion
    # ============================================

    def on_trade(self, trade: Trade) -> None:
        """
        Fold a trade into its market's candle, creating the candle if needed.
        """
        market = trade.market
        with self._candles_lock:
            candle = self._candles.get(market)
            if candle is None:
                self._candles[market] = Candle.from_trade(trade)
            else:
                candle.fold(trade)

    def subscribe(self, dispatcher) -> None:
        """Register this aggregator as an observer of a TradeDispatcher."""
        dispatcher.register(self.on_trade)

    def candles(self) -> Dict[str, Candle]:
        """Copy of the in-progress candles, keyed by market."""
        with self._candles_lock:
            return {market: candle.model_copy() for market, candle in self._candles.items()}

    # ============================================
    # Window Rollover
    # ============================================

    def flush(self) -> List[Candle]:
        """
        Finalize the current window for every known market.

        Each finalized candle is stamped with the window-open time and handed
        to the bar sink on its own task; this method does not wait for the
        sink. Must be called from the thread running the event loop.

        Returns:
            List[Candle]: Copies of the finalized candles, one per market
        """
        opened_at = window_open(self._clock(), self.interval)

        with self._candles_lock:
            bars = []
            for market, candle in self._candles.items():
                candle.time = opened_at
                bars.append(candle)
                self._candles[market] = candle.reseeded()

        for bar in bars:
            log_bar(bar)
            self._tasks.spawn(self.on_bar, bar, name=f"bar_sink_{bar.market}")

        self._logger.debug(f"Flushed {len(bars)} candle(s) for window opened at {opened_at.isoformat()}")
        return [bar.model_copy() for bar in bars]

    # ============================================
    # Timer Lifecycle
    # ============================================

    async def start(self) -> None:
        """Start the flush timer. Calling start() on a running aggregator is a no-op."""
        if self._timer is not None and not self._timer.done():
            return
        self._logger.info(f"Candle aggregator started (interval={self.interval.total_seconds():g}s)")
        self._timer = asyncio.create_task(self._run(), name="candle_aggregator_timer")

    async def stop(self) -> None:
        """Stop the flush timer. In-progress candles are kept and not flushed."""
        if self._timer is None:
            return
        self._timer.cancel()
        try:
            await self._timer
        except asyncio.CancelledError:
            pass
        self._timer = None
        self._logger.info("Candle aggregator stopped")

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def drain(self) -> None:
        """Wait until all bar sink invocations have finished."""
        await self._tasks.drain()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        period = self.interval.total_seconds()
        deadline = loop.time() + period

        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))

            # One flush per wake-up; ticks missed while the loop was blocked are dropped
            now = loop.time()
            deadline += period
            skipped = 0
            while deadline <= now:
                deadline += period
                skipped += 1
            if skipped:
                self._logger.warning(f"Candle timer fell behind, skipped {skipped} tick(s)")

            try:
                self.flush()
            except Exception as e:
                self._logger.error(f"Candle flush failed: {e}")
