"""
Unit Tests for the Background Task Spawner

These tests verify that BackgroundTasks:
- Runs plain callables and coroutine functions on their own tasks
- Isolates failures and forwards them to the error handler
- Tracks pending tasks until they are drained

Run with:
    pytest tests/unit/test_tasks.py -v
"""

import asyncio
import pytest
from unittest.mock import MagicMock

from core.utils.tasks import BackgroundTasks


class TestSpawn:
    """Tests for spawn() and drain()"""

    @pytest.mark.asyncio
    async def test_spawn_runs_plain_callable(self):
        """Verify plain callables are invoked with the given arguments"""
        tasks = BackgroundTasks()
        func = MagicMock()

        tasks.spawn(func, 1, "two")
        await tasks.drain()

        func.assert_called_once_with(1, "two")

    @pytest.mark.asyncio
    async def test_spawn_awaits_coroutine_functions(self):
        """Verify coroutine functions are awaited to completion"""
        tasks = BackgroundTasks()
        seen = []

        async def handler(value):
            await asyncio.sleep(0)
            seen.append(value)

        tasks.spawn(handler, "x")
        await tasks.drain()

        assert seen == ["x"]

    @pytest.mark.asyncio
    async def test_spawn_returns_before_callback_runs(self):
        """Verify spawn() does not run the callback inline"""
        tasks = BackgroundTasks()
        func = MagicMock()

        tasks.spawn(func)

        func.assert_not_called()
        assert tasks.pending == 1

        await tasks.drain()
        assert tasks.pending == 0

    def test_spawn_requires_running_loop(self):
        """Verify spawning outside an event loop raises"""
        tasks = BackgroundTasks()

        with pytest.raises(RuntimeError):
            tasks.spawn(print)


class TestFailureIsolation:
    """Tests for failure handling"""

    @pytest.mark.asyncio
    async def test_failure_is_not_raised_and_reaches_error_handler(self):
        """Verify failures go to the error handler, not the caller"""
        errors = []
        tasks = BackgroundTasks(error_handler=errors.append)

        def boom():
            raise RuntimeError("boom")

        tasks.spawn(boom)
        await tasks.drain()

        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)

    @pytest.mark.asyncio
    async def test_async_error_handler_is_awaited(self):
        """Verify coroutine error handlers run to completion"""
        errors = []

        async def on_error(exc):
            await asyncio.sleep(0)
            errors.append(exc)

        tasks = BackgroundTasks(error_handler=on_error)
        tasks.spawn(lambda: 1 / 0)
        await tasks.drain()

        assert len(errors) == 1
        assert isinstance(errors[0], ZeroDivisionError)

    @pytest.mark.asyncio
    async def test_failing_error_handler_is_contained(self):
        """Verify an error handler that fails does not escape"""
        def on_error(exc):
            raise ValueError("handler broke")

        tasks = BackgroundTasks(error_handler=on_error)
        tasks.spawn(lambda: 1 / 0)
        await tasks.drain()

        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self):
        """Verify sibling tasks still run when one fails"""
        tasks = BackgroundTasks()
        ok = MagicMock()

        tasks.spawn(lambda: 1 / 0)
        tasks.spawn(ok)
        await tasks.drain()

        ok.assert_called_once()
