"""
Trade Dispatcher

Fan-out point between the push feed and everything that wants to see trades.
Every dispatched trade is handed to every registered observer exactly once,
each invocation on its own asyncio task, so that:

- a slow observer never delays delivery to the other observers
- no observer delays the dispatcher from accepting the next trade
- a failing observer never affects the dispatcher or the other observers

Ordering:
    Invocation tasks are created in arrival order and asyncio starts ready
    tasks in creation order, so each observer begins handling trades in the
    order they reached the dispatcher. That is not necessarily exchange event
    order: the feed itself may deliver out of order.

Backpressure:
    None. A pathologically slow observer accumulates pending invocations
    (see `pending`) rather than slowing the feed down.
"""

import threading
from typing import Any, Callable, List, Optional

from core.logging import get_logger
from core.schemas import Trade
from core.utils.tasks import BackgroundTasks


TradeObserver = Callable[[Trade], Any]


class TradeDispatcher:
    """
    Observer registry with concurrent, fire-and-forget delivery.

    Each dispatcher owns its own observers; create as many as needed.

    Example:
        >>> dispatcher = TradeDispatcher()
        >>> dispatcher.register(lambda t: print(t))
        >>> dispatcher.dispatch(trade)   # returns immediately
        >>> await dispatcher.drain()     # wait for deliveries (tests, shutdown)
    """

    def __init__(self, tasks: Optional[BackgroundTasks] = None) -> None:
        self._observers: List[TradeObserver] = []
        self._observers_lock = threading.Lock()
        self._tasks = tasks or BackgroundTasks()
        self._logger = get_logger(__name__)

    @property
    def observer_count(self) -> int:
        with self._observers_lock:
            return len(self._observers)

    @property
    def pending(self) -> int:
        """Number of observer invocations that have not finished yet."""
        return self._tasks.pending

    def register(self, observer: TradeObserver) -> None:
        """
        Add an observer. Safe to call at any time, including mid-dispatch.

        Observers are neither validated nor deduplicated: registering the
        same callable twice delivers every trade to it twice.

        Args:
            observer: Plain callable or coroutine function taking a Trade
        """
        with self._observers_lock:
            self._observers.append(observer)
            total = len(self._observers)
        self._logger.debug(f"Observer registered. total={total}")

    def dispatch(self, trade: Trade) -> None:
        """
        Deliver a trade to every currently registered observer.

        Returns as soon as the invocations are scheduled. Must be called from
        the thread running the event loop.
        """
        with self._observers_lock:
            observers = list(self._observers)

        for observer in observers:
            self._tasks.spawn(observer, trade, name=f"trade_observer_{trade.market}")

    async def drain(self) -> None:
        """Wait until all scheduled observer invocations have finished."""
        await self._tasks.drain()
