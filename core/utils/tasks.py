"""
Background Task Spawner

Fire-and-forget execution of callbacks on the running asyncio loop. Both the
trade dispatcher (one task per observer per trade) and the candle aggregator
(one task per finalized bar) deliver through this module, so a slow or failing
callback never holds up the caller.

- Each call runs in its own asyncio.Task; plain callables and coroutine
  functions are both accepted.
- Strong references are kept until the task finishes (the event loop only
  holds weak references to tasks).
- Failures are logged and forwarded to an optional error handler (plain
  callable or coroutine function, run on its own task). They are never
  raised back into the spawner. A failing error handler is only logged.

Caller risk:
    Spawning is unbounded. A callback that is slower than the rate it is
    invoked at accumulates pending tasks (see `pending`) instead of slowing
    down the producer.
"""

import asyncio
import inspect
from typing import Any, Callable, Optional, Set

from core.logging import get_logger


ErrorHandler = Callable[[BaseException], Any]


class BackgroundTasks:
    """
    Owner of a set of fire-and-forget asyncio tasks.

    Example:
        >>> tasks = BackgroundTasks()
        >>> tasks.spawn(print, "hello")
        >>> await tasks.drain()
    """

    def __init__(self, error_handler: Optional[ErrorHandler] = None) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self._error_handler = error_handler
        self._logger = get_logger(__name__)

    @property
    def pending(self) -> int:
        """Number of spawned tasks that have not finished yet."""
        return len(self._tasks)

    def spawn(self, func: Callable[..., Any], *args: Any, name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule `func(*args)` on the running loop and return immediately.

        Args:
            func: Plain callable or coroutine function
            *args: Positional arguments for `func`
            name: Optional task name (shows up in asyncio debug output)

        Returns:
            asyncio.Task: The spawned task

        Raises:
            RuntimeError: If called without a running event loop
        """
        task = asyncio.get_running_loop().create_task(self._invoke(func, args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def drain(self) -> None:
        """
        Wait until every spawned task (including ones spawned meanwhile) is done.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _invoke(self, func: Callable[..., Any], args: tuple) -> None:
        result = func(*args)
        if inspect.isawaitable(result):
            await result

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            return

        exc = task.exception()
        if exc is None:
            return

        self._logger.warning(f"Background task {task.get_name()} failed: {exc!r}")

        if self._error_handler is not None:
            handler_task = task.get_loop().create_task(
                self._invoke(self._error_handler, (exc,)), name="error_handler"
            )
            self._tasks.add(handler_task)
            handler_task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if not task.cancelled() and task.exception() is not None:
            self._logger.error(f"Error handler failed: {task.exception()!r}")
