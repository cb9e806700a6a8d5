"""
Typed publish/subscribe channel between the monitors and the coordinator.

Monitors publish immutable messages; each subscriber owns an asyncio.Queue
and drains it on its own task.  Publishing never blocks and never fails
because of a subscriber.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable, Iterable, Union

from .models import ArbiterResult, UpcomingAlert

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PlaybackUpdate:
    result: ArbiterResult


@dataclasses.dataclass(frozen=True)
class AlertUpdate:
    alert: UpcomingAlert | None


@dataclasses.dataclass(frozen=True)
class HoverUpdate:
    hovering: bool


@dataclasses.dataclass(frozen=True)
class IntroUpdate:
    active: bool


@dataclasses.dataclass(frozen=True)
class SuspendUpdate:
    suspended: bool


Message = Union[PlaybackUpdate, AlertUpdate, HoverUpdate, IntroUpdate, SuspendUpdate]

MESSAGE_TYPES: tuple[type, ...] = (
    PlaybackUpdate, AlertUpdate, HoverUpdate, IntroUpdate, SuspendUpdate,
)


class EventBus:
    """Routes each published message to the queues subscribed to its type."""

    def __init__(self) -> None:
        self._subscribers: dict[type, list[asyncio.Queue]] = {}

    def subscribe(self, message_types: Iterable[type], queue: asyncio.Queue) -> Callable[[], None]:
        """Deliver messages of the given types to queue; returns an unsubscribe function."""
        types = tuple(message_types)
        for message_type in types:
            self._subscribers.setdefault(message_type, []).append(queue)

        def unsubscribe() -> None:
            for message_type in types:
                queues = self._subscribers.get(message_type, [])
                if queue in queues:
                    queues.remove(queue)

        return unsubscribe

    def publish(self, message: Message) -> None:
        queues = self._subscribers.get(type(message), [])
        if not queues:
            _LOGGER.debug("No subscriber for %s", type(message).__name__)
        for queue in queues:
            queue.put_nowait(message)
