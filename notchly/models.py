"""
Domain models for Notchly.

This module contains pure data classes describing players, calendar events
and the values derived from them.  No asyncio, HTTP or presentation concerns
live here.
"""
from __future__ import annotations

import dataclasses
import enum
from datetime import datetime
from typing import Any, Union


class NotchState(str, enum.Enum):
    """Presentation mode of the notch; exactly one at a time."""

    COLLAPSED = "collapsed"
    ACTIVITY = "activity"
    EXPANDED = "expanded"


class ActivityKind(str, enum.Enum):
    """What an activity/expanded notch is showing."""

    CALENDAR = "calendar"
    MEDIA = "media"
    INTRO = "intro"


class AlertTier(str, enum.Enum):
    NONE = "none"
    FIFTEEN_MINUTES = "15m"
    FIVE_MINUTES = "5m"
    COUNTDOWN = "countdown"


@dataclasses.dataclass(frozen=True)
class PlaybackSnapshot:
    """Now-playing state of one backend at poll time."""

    source_id: str
    title: str = ""
    artist: str = ""
    album: str = ""
    duration_sec: float = 0.0
    elapsed_sec: float = 0.0
    is_playing: bool = False
    is_running: bool = True

    @property
    def has_duration(self) -> bool:
        return self.duration_sec > 0


@dataclasses.dataclass(frozen=True)
class ActiveSource:
    """The arbiter's current (or remembered) choice of backend."""

    source_id: str
    last_playing_at: datetime | None = None


@dataclasses.dataclass(frozen=True)
class ArbiterResult:
    """
    Outcome of a single arbitration tick.

    source_id is None when no backend should be surfaced.  snapshot may be
    None even with a source present if the now-playing query failed.
    """

    source_id: str | None = None
    snapshot: PlaybackSnapshot | None = None
    is_playing: bool = False

    @property
    def has_source(self) -> bool:
        return self.source_id is not None


@dataclasses.dataclass(frozen=True)
class CalendarEvent:
    """A single calendar occurrence, immutable per fetch."""

    id: str
    title: str
    start_time: datetime
    end_time: datetime
    is_all_day: bool = False
    status: str = "confirmed"
    attendees: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Naive times are wall-clock times in the local zone
        for name in ("start_time", "end_time"):
            moment = getattr(self, name)
            if moment.tzinfo is None:
                object.__setattr__(self, name, moment.astimezone())
        if not self.is_all_day and self.start_time > self.end_time:
            raise ValueError(
                f"Event {self.id!r} ends before it starts ({self.start_time} > {self.end_time})"
            )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CalendarEvent:
        """
        Build an event from a JSON mapping.

        Expects ISO-8601 "start"/"end" strings; times without an offset are
        taken as local time.  "all_day", "status" and "attendees" are optional.
        """
        return cls(
            id=str(raw["id"]),
            title=raw.get("title") or "",
            start_time=datetime.fromisoformat(raw["start"]),
            end_time=datetime.fromisoformat(raw["end"]),
            is_all_day=bool(raw.get("all_day", False)),
            status=raw.get("status") or "confirmed",
            attendees=tuple(raw.get("attendees") or ()),
        )


@dataclasses.dataclass(frozen=True)
class ConflictPair:
    """Two adjacent, time-overlapping, non-all-day events."""

    event_id_a: str
    event_id_b: str
    overlap_start: datetime
    overlap_end: datetime


@dataclasses.dataclass(frozen=True)
class ConflictReport:
    """Flat id set for highlighting plus ordered pairs for inline annotation."""

    conflicting_ids: frozenset[str] = frozenset()
    pairs: tuple[ConflictPair, ...] = ()


@dataclasses.dataclass(frozen=True)
class UpcomingAlert:
    """The single most imminent qualifying event."""

    event_id: str
    title: str
    seconds_remaining: int
    tier: AlertTier

    @property
    def label(self) -> str:
        if self.tier is AlertTier.COUNTDOWN:
            return f"{self.seconds_remaining}s"
        if self.tier is AlertTier.NONE:
            return ""
        return self.tier.value


# Tagged union for event lists annotated with conflicts.

@dataclasses.dataclass(frozen=True)
class EventRow:
    event: CalendarEvent


@dataclasses.dataclass(frozen=True)
class ConflictRow:
    pair: ConflictPair


RowItem = Union[EventRow, ConflictRow]
