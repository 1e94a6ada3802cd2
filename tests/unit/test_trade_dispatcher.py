"""
Unit Tests for the Trade Dispatcher

These tests verify that TradeDispatcher:
- Delivers every trade to every observer exactly once
- Keeps arrival order per observer
- Never lets a slow or failing observer hold up the others
- Owns its observers (independent instances)

Run with:
    pytest tests/unit/test_trade_dispatcher.py -v
"""

import asyncio
import threading
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from core.schemas import Trade, TradeSide
from core.utils.tasks import BackgroundTasks
from services.trade_dispatcher import TradeDispatcher


def make_trade(price, market="LTC"):
    return Trade(
        base_currency="BTC",
        market_currency=market,
        side=TradeSide.BUY,
        price=price,
        quantity=1.0,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


# ============================================
# Tests for Registration
# ============================================

class TestRegister:
    """Tests for register()"""

    def test_register_appends_observers(self):
        dispatcher = TradeDispatcher()

        dispatcher.register(print)
        dispatcher.register(print)

        assert dispatcher.observer_count == 2

    def test_instances_do_not_share_observers(self):
        first = TradeDispatcher()
        second = TradeDispatcher()

        first.register(print)

        assert first.observer_count == 1
        assert second.observer_count == 0

    def test_register_is_thread_safe(self):
        """Verify concurrent registration from many threads loses nothing"""
        dispatcher = TradeDispatcher()

        def register_many():
            for _ in range(100):
                dispatcher.register(print)

        threads = [threading.Thread(target=register_many) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert dispatcher.observer_count == 800


# ============================================
# Tests for Dispatch
# ============================================

class TestDispatch:
    """Tests for dispatch()"""

    @pytest.mark.asyncio
    async def test_every_observer_receives_trade_once(self):
        """Verify fan-out completeness"""
        dispatcher = TradeDispatcher()
        observers = [MagicMock() for _ in range(5)]
        for observer in observers:
            dispatcher.register(observer)

        trade = make_trade(10.0)
        dispatcher.dispatch(trade)
        await dispatcher.drain()

        for observer in observers:
            observer.assert_called_once_with(trade)

    @pytest.mark.asyncio
    async def test_duplicate_registration_delivers_twice(self):
        """Verify identical observers are not deduplicated"""
        dispatcher = TradeDispatcher()
        observer = MagicMock()
        dispatcher.register(observer)
        dispatcher.register(observer)

        dispatcher.dispatch(make_trade(10.0))
        await dispatcher.drain()

        assert observer.call_count == 2

    @pytest.mark.asyncio
    async def test_dispatch_without_observers_is_noop(self):
        dispatcher = TradeDispatcher()

        dispatcher.dispatch(make_trade(10.0))

        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_dispatch_does_not_run_observers_inline(self):
        """Verify dispatch() returns before observers run"""
        dispatcher = TradeDispatcher()
        observer = MagicMock()
        dispatcher.register(observer)

        dispatcher.dispatch(make_trade(10.0))

        observer.assert_not_called()
        await dispatcher.drain()
        observer.assert_called_once()

    @pytest.mark.asyncio
    async def test_arrival_order_preserved_per_observer(self):
        """Verify each observer sees trades in the order they were dispatched"""
        dispatcher = TradeDispatcher()
        seen = []
        dispatcher.register(lambda t: seen.append(t.price))

        for price in range(50):
            dispatcher.dispatch(make_trade(float(price)))
        await dispatcher.drain()

        assert seen == [float(p) for p in range(50)]

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_block_others(self):
        """Verify a raising observer is isolated"""
        errors = []
        dispatcher = TradeDispatcher(BackgroundTasks(error_handler=errors.append))
        healthy = MagicMock()

        def broken(trade):
            raise RuntimeError("observer failed")

        dispatcher.register(broken)
        dispatcher.register(healthy)

        dispatcher.dispatch(make_trade(10.0))
        dispatcher.dispatch(make_trade(11.0))
        await dispatcher.drain()

        assert healthy.call_count == 2
        assert len(errors) == 2

    @pytest.mark.asyncio
    async def test_slow_observer_does_not_delay_others(self):
        """Verify a blocked observer neither stalls dispatch nor other observers"""
        dispatcher = TradeDispatcher()
        release = asyncio.Event()
        fast = MagicMock()

        async def slow(trade):
            await release.wait()

        dispatcher.register(slow)
        dispatcher.register(fast)

        for price in range(3):
            dispatcher.dispatch(make_trade(float(price)))

        for _ in range(5):
            await asyncio.sleep(0)

        assert fast.call_count == 3
        assert dispatcher.pending == 3

        release.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_observer_registered_later_only_sees_later_trades(self):
        dispatcher = TradeDispatcher()
        early = MagicMock()
        late = MagicMock()
        dispatcher.register(early)

        dispatcher.dispatch(make_trade(1.0))
        dispatcher.register(late)
        dispatcher.dispatch(make_trade(2.0))
        await dispatcher.drain()

        assert early.call_count == 2
        assert late.call_count == 1
        assert late.call_args[0][0].price == 2.0
