"""
Ticker — a cancellable periodic task.

This is a pure asyncio concurrency primitive with no Notchly-specific logic.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class Ticker:
    """
    Runs an async callback every `interval` seconds on one worker task.

    Ticks are strictly sequential: the next tick never starts before the
    previous callback has returned.  request_tick() cuts the current wait
    short so the next tick runs as soon as the running one (if any) ends.
    Exceptions raised by the callback are logged and the ticker keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking; the first tick runs immediately.  No-op if running."""
        if self.running:
            return
        self._wakeup = asyncio.Event()
        self._task = asyncio.ensure_future(self._worker())
        _LOGGER.debug("Ticker %s started (every %.2fs)", self.name, self.interval)

    def request_tick(self) -> None:
        """Ask for an early tick.  Ignored while stopped."""
        if self.running:
            self._wakeup.set()

    async def stop(self) -> None:
        """Cancel the worker and wait until it has finished."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        results = await asyncio.gather(task, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _LOGGER.debug("Ticker %s worker error during stop: %s", self.name, result)
        _LOGGER.debug("Ticker %s stopped", self.name)

    async def _worker(self) -> None:
        while True:
            self._wakeup.clear()
            try:
                await self._callback()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Ticker %s callback failed: %s", self.name, exc)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
