"""
HoverDebouncer — coalesces raw hover enter/exit events.

Every raw event cancels the pending timer and starts a new one; only the
value seen last when a timer finally fires is forwarded.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

_LOGGER = logging.getLogger(__name__)


class HoverDebouncer:

    def __init__(self, delay: float, apply: Callable[[bool], None]) -> None:
        self.delay = delay
        self._apply = apply
        self._pending: bool | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, hovering: bool) -> None:
        """Record a raw hover event and (re)start the debounce timer."""
        self._pending = hovering
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop any pending value without applying it."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def _fire(self) -> None:
        self._handle = None
        value, self._pending = self._pending, None
        if value is None:
            return
        _LOGGER.debug("Hover settled: %s", value)
        self._apply(value)
