"""
CalendarEventStore capability.

Responsible for:
- Describing the calendar source Notchly reads events from
- Change-listener bookkeeping shared by the concrete stores
- An in-memory store for hosts that push events themselves
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Protocol, runtime_checkable

from ..models import CalendarEvent

_LOGGER = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]


@runtime_checkable
class CalendarEventStore(Protocol):
    """Untrusted, possibly slow source of calendar events."""

    async def events(self, start: datetime, end: datetime) -> list[CalendarEvent]: ...

    async def authorization_granted(self) -> bool: ...

    def add_change_listener(self, callback: ChangeCallback) -> Callable[[], None]: ...


class ChangeListeners:
    """Registry of change callbacks; add() returns the matching remove function."""

    def __init__(self) -> None:
        self._callbacks: list[ChangeCallback] = []

    def add(self, callback: ChangeCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def fire(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Calendar change listener failed: %s", exc)

    def __len__(self) -> int:
        return len(self._callbacks)


def events_in_range(
    events: Iterable[CalendarEvent], start: datetime, end: datetime
) -> list[CalendarEvent]:
    """Events intersecting [start, end), in their original order."""
    return [e for e in events if e.start_time < end and e.end_time >= start]


class InMemoryCalendarEventStore:
    """
    Calendar store backed by a list the host replaces wholesale.

    Useful when the host already owns calendar access (e.g. a native bridge)
    and simply pushes snapshots in.
    """

    def __init__(self, events: Iterable[CalendarEvent] = (), authorized: bool = True) -> None:
        self._events: list[CalendarEvent] = list(events)
        self._authorized = authorized
        self._listeners = ChangeListeners()

    async def events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        if not self._authorized:
            return []
        return events_in_range(self._events, start, end)

    async def authorization_granted(self) -> bool:
        return self._authorized

    def add_change_listener(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._listeners.add(callback)

    def set_events(self, events: Iterable[CalendarEvent]) -> None:
        """Replace the snapshot and notify listeners if it changed."""
        new_events = list(events)
        if new_events == self._events:
            return
        _LOGGER.debug("Calendar snapshot replaced: %d -> %d events", len(self._events), len(new_events))
        self._events = new_events
        self._listeners.fire()

    def set_authorized(self, authorized: bool) -> None:
        if authorized == self._authorized:
            return
        self._authorized = authorized
        self._listeners.fire()
