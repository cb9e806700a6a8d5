"""
PlayerBackend capability and the bounded call helper used to talk to it.

Responsible for:
- Describing what Notchly needs from one external media application
- Running any backend coroutine under a timeout, reducing failures to a default

How a backend actually reaches its application (scripting bridge, IPC, ...)
is the backend's own business.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol, TypeVar, runtime_checkable

from ..models import PlaybackSnapshot

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class PlayerBackend(Protocol):
    """
    One supported media application.

    Query methods report the application's state; control methods are
    best-effort and must silently no-op when the application is not running.
    Implementations that block should offload to a thread themselves.
    """

    source_id: str

    async def is_app_running(self) -> bool: ...

    async def is_playing(self) -> bool: ...

    async def now_playing(self) -> PlaybackSnapshot | None: ...

    async def play_pause(self) -> None: ...

    async def next_track(self) -> None: ...

    async def previous_track(self) -> None: ...

    async def seek(self, seconds: float) -> None: ...

    async def set_volume(self, percent: int) -> None: ...


async def call_backend(
    source_id: str,
    operation: str,
    call: Callable[[], Awaitable[T]],
    timeout: float,
    default: T,
) -> T:
    """
    Invoke call() and await it, bounded by timeout.

    Returns default on timeout or on any exception so that one misbehaving
    player never aborts the caller.  Cancellation is propagated.
    """
    try:
        return await asyncio.wait_for(call(), timeout=timeout)
    except asyncio.TimeoutError:
        _LOGGER.warning("%s.%s timed out after %.1fs", source_id, operation, timeout)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.warning("%s.%s failed: %s", source_id, operation, exc)
    return default
