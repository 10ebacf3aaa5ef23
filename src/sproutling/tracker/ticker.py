"""Cancellable periodic tick sources."""

import asyncio
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger()


class Ticker(Protocol):
    """A periodic callback source that is replaced, never stacked, on restart."""

    @property
    def running(self) -> bool: ...

    def start(self, callback: Callable[[], None], interval: float) -> None: ...

    def cancel(self) -> None: ...


class AsyncioTicker:
    """Ticker driven by a task on the running asyncio event loop.

    The callback runs on the loop thread, so it shares the single-writer
    path with every other tracker mutation.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], None], interval: float) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(callback, interval))

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, callback: Callable[[], None], interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    callback()
                except Exception:
                    logger.exception("tick_callback_error")
        except asyncio.CancelledError:
            pass
