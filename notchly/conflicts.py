"""
Conflict detection for one calendar day.

Only immediately adjacent events (after a stable sort by start time) are
compared.  An event overlapping a non-neighbour is therefore not reported:
for A 9:00-11:00, B 9:30-10:15, C 10:00-10:30 the pairs are (A, B) and
(B, C); A and C overlap too but are never compared.  Zero-length events
produce no pair since their overlap would be empty.
"""
from __future__ import annotations

from typing import Iterable

from .models import (
    CalendarEvent,
    ConflictPair,
    ConflictReport,
    ConflictRow,
    EventRow,
    RowItem,
)


def _by_start(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    # sorted() is stable, so equal starts keep their source order
    return sorted(events, key=lambda e: e.start_time)


def detect_conflicts(events: Iterable[CalendarEvent]) -> ConflictReport:
    """Return the conflicting event ids and the ordered conflict pairs."""
    timed = _by_start(e for e in events if not e.is_all_day)

    conflicting_ids: set[str] = set()
    pairs: list[ConflictPair] = []
    for current, following in zip(timed, timed[1:]):
        if current.end_time <= following.start_time:
            continue
        overlap_start = max(current.start_time, following.start_time)
        overlap_end = min(current.end_time, following.end_time)
        if overlap_start >= overlap_end:
            continue
        conflicting_ids.add(current.id)
        conflicting_ids.add(following.id)
        pairs.append(ConflictPair(current.id, following.id, overlap_start, overlap_end))
    return ConflictReport(conflicting_ids=frozenset(conflicting_ids), pairs=tuple(pairs))


def build_event_rows(
    events: Iterable[CalendarEvent], report: ConflictReport | None = None
) -> list[RowItem]:
    """
    Interleave a day's events with conflict annotations.

    All events appear in start order (all-day ones included); each conflict
    row directly follows the earlier event of its pair.
    """
    events = list(events)
    if report is None:
        report = detect_conflicts(events)
    pairs_by_first = {}
    for pair in report.pairs:
        pairs_by_first.setdefault(pair.event_id_a, []).append(pair)

    rows: list[RowItem] = []
    for event in _by_start(events):
        rows.append(EventRow(event))
        if event.is_all_day:
            continue
        for pair in pairs_by_first.pop(event.id, ()):
            rows.append(ConflictRow(pair))
    return rows
