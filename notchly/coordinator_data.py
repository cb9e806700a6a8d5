"""
CoordinatorData — immutable snapshot of everything the presentation layer reads.

This is a pure data module with no asyncio dependencies.
"""
from __future__ import annotations

import dataclasses

from .models import ActivityKind, ArbiterResult, NotchState, UpcomingAlert


@dataclasses.dataclass(frozen=True)
class CoordinatorData:
    """
    Typed, copy-on-write snapshot of the notch.

    Always replace via dataclasses.replace(); never mutate in place.
    """

    state: NotchState = NotchState.COLLAPSED

    # What activity/expanded is showing; None when collapsed or plainly hovered
    activity: ActivityKind | None = None

    # Latest arbitration outcome (source may be absent)
    playback: ArbiterResult = dataclasses.field(default_factory=ArbiterResult)

    # Latest calendar alert, None when nothing is imminent
    alert: UpcomingAlert | None = None

    # Debounced pointer-over-notch flag
    hovering: bool = False

    # Onboarding forces the expanded panel
    intro_active: bool = False

    # True while the host sleeps; state is frozen meanwhile
    suspended: bool = False

    @property
    def media_active(self) -> bool:
        return self.playback.has_source and self.playback.is_playing
