"""
NotchActivityCoordinator — the single writer of NotchState.

Responsibilities:
- Subscribe to every message type on the EventBus with one queue.
- Fold each message into the latest-known inputs on one loop task.
- Apply the transition table and push CoordinatorData snapshots to listeners
  whenever the published snapshot changes.

The transition table is a pure function of the latest value of each input,
so the arrival order across monitors never matters.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable

from .bus import (
    MESSAGE_TYPES,
    AlertUpdate,
    EventBus,
    HoverUpdate,
    IntroUpdate,
    Message,
    PlaybackUpdate,
    SuspendUpdate,
)
from .coordinator_data import CoordinatorData
from .models import ActivityKind, ArbiterResult, NotchState, UpcomingAlert

__all__ = ["CoordinatorData", "NotchActivityCoordinator", "resolve_state"]

_LOGGER = logging.getLogger(__name__)

Listener = Callable[[CoordinatorData], None]


def resolve_state(
    playback: ArbiterResult,
    alert: UpcomingAlert | None,
    hovering: bool,
    intro_active: bool,
) -> tuple[NotchState, ActivityKind | None]:
    """
    Transition table, first match wins.

    Suspension is handled by the caller, which simply skips this function.
    """
    if intro_active:
        return NotchState.EXPANDED, ActivityKind.INTRO
    if hovering:
        return NotchState.EXPANDED, None
    if alert is not None:
        # calendar outranks media when both are eligible
        return NotchState.ACTIVITY, ActivityKind.CALENDAR
    if playback.has_source and playback.is_playing:
        return NotchState.ACTIVITY, ActivityKind.MEDIA
    return NotchState.COLLAPSED, None


class NotchActivityCoordinator:
    """
    Folds monitor results, hover, intro and suspend signals into CoordinatorData.

    Messages are applied strictly one at a time by the loop started in
    start(); apply() is also callable directly for synchronous use.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue()
        self._unsubscribe: Callable[[], None] | None = None
        self._task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

        # Latest value of every input, kept current even while suspended
        self._inputs = CoordinatorData()
        # What listeners have seen
        self.data = CoordinatorData()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def async_add_listener(self, callback: Listener) -> Callable[[], None]:
        """Call callback with every new snapshot; returns the remove function."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self.data)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Notch listener failed: %s", exc)

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------

    def apply(self, message: Message) -> CoordinatorData:
        """Fold one message and return the (possibly unchanged) published snapshot."""
        inputs = self._inputs
        if isinstance(message, PlaybackUpdate):
            inputs = dataclasses.replace(inputs, playback=message.result)
        elif isinstance(message, AlertUpdate):
            inputs = dataclasses.replace(inputs, alert=message.alert)
        elif isinstance(message, HoverUpdate):
            inputs = dataclasses.replace(inputs, hovering=message.hovering)
        elif isinstance(message, IntroUpdate):
            inputs = dataclasses.replace(inputs, intro_active=message.active)
        elif isinstance(message, SuspendUpdate):
            inputs = dataclasses.replace(inputs, suspended=message.suspended)
            _LOGGER.info("Notch updates %s", "suspended" if message.suspended else "resumed")
        else:
            _LOGGER.debug("Ignoring unknown message %r", message)
            return self.data
        self._inputs = inputs

        if inputs.suspended:
            new_data = dataclasses.replace(self.data, suspended=True)
        else:
            state, activity = resolve_state(
                inputs.playback, inputs.alert, inputs.hovering, inputs.intro_active
            )
            new_data = dataclasses.replace(inputs, state=state, activity=activity)

        if new_data != self.data:
            previous, self.data = self.data, new_data
            if previous.state != new_data.state or previous.activity != new_data.activity:
                _LOGGER.info(
                    "Notch state changing: %s (%s) -> %s (%s)",
                    previous.state.value, _kind(previous.activity),
                    new_data.state.value, _kind(new_data.activity),
                )
            self._notify()
        return self.data

    def post(self, message: Message) -> None:
        """Queue a message for the loop, bypassing the bus."""
        self._queue.put_nowait(message)

    async def async_wait_idle(self) -> None:
        """Wait until every queued message has been applied."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            self._apply_queued(await self._queue.get())

    def _apply_queued(self, message: Message) -> None:
        try:
            self.apply(message)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Failed to apply %r: %s", message, exc)
        finally:
            self._queue.task_done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(MESSAGE_TYPES, self._queue)
        self._task = asyncio.ensure_future(self._run())

    async def async_shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        # apply what was already queued so a later start does not replay it
        while not self._queue.empty():
            self._apply_queued(self._queue.get_nowait())


def _kind(activity: ActivityKind | None) -> str:
    return activity.value if activity is not None else "-"
