"""
Low-level helpers for playback snapshots.

Responsibilities:
- Normalise raw snapshots reported by players (duration memory, elapsed clamping).
- Interpolate elapsed time between polls and format it for display.

No asyncio here: these functions are pure data transforms.
"""
from __future__ import annotations

import dataclasses
import logging

from .const import MIN_VALID_DURATION
from .models import PlaybackSnapshot

_LOGGER = logging.getLogger(__name__)


def normalize_snapshot(
    snapshot: PlaybackSnapshot, last_valid_duration: float | None = None
) -> PlaybackSnapshot:
    """
    Return a copy of snapshot that honours elapsed <= duration.

    Players report zero or tiny durations while a track is loading; in that
    case the last valid duration for the same source is reused if known.
    """
    duration = snapshot.duration_sec
    if duration <= MIN_VALID_DURATION and last_valid_duration and last_valid_duration > MIN_VALID_DURATION:
        duration = last_valid_duration

    elapsed = max(0.0, snapshot.elapsed_sec)
    if duration > 0 and elapsed > duration:
        _LOGGER.debug(
            "Clamping elapsed %.1fs to duration %.1fs for %s",
            elapsed, duration, snapshot.source_id,
        )
        elapsed = duration

    if duration == snapshot.duration_sec and elapsed == snapshot.elapsed_sec:
        return snapshot
    return dataclasses.replace(snapshot, duration_sec=duration, elapsed_sec=elapsed)


def interpolate_elapsed(snapshot: PlaybackSnapshot, seconds_since_poll: float) -> float:
    """Estimate the playhead position seconds_since_poll after the snapshot was taken."""
    elapsed = snapshot.elapsed_sec
    if snapshot.is_playing:
        elapsed += max(0.0, seconds_since_poll)
    if snapshot.has_duration:
        elapsed = min(elapsed, snapshot.duration_sec)
    return elapsed


def progress(snapshot: PlaybackSnapshot, elapsed: float | None = None) -> float:
    """Fraction 0..1 of the track played; 0 when the duration is unknown."""
    if not snapshot.has_duration:
        return 0.0
    position = snapshot.elapsed_sec if elapsed is None else elapsed
    return min(1.0, max(0.0, position / snapshot.duration_sec))


def format_time(seconds: float) -> str:
    """0:00 style."""
    total = int(max(0.0, seconds))
    return f"{total // 60}:{total % 60:02d}"


def format_remaining(snapshot: PlaybackSnapshot, elapsed: float | None = None) -> str:
    """-0:00 style time left in the track."""
    position = snapshot.elapsed_sec if elapsed is None else elapsed
    return "-" + format_time(snapshot.duration_sec - position)
