"""
Engine configuration.

Options arrive as a plain dict (from the host application's settings) and
are validated with CONFIG_SCHEMA before being frozen into EngineConfig.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any

import voluptuous as vol

from .const import (
    ALERT_TIER_BOUNDS,
    BACKEND_TIMEOUT,
    CALENDAR_INTERVAL,
    DEFAULT_ALERT_TIMING,
    HOVER_DEBOUNCE,
    MAX_EVENTS_TO_DISPLAY,
    PLAYBACK_INTERVAL,
    STORE_TIMEOUT,
    UPCOMING_HORIZON_MINUTES,
)

_LOGGER = logging.getLogger(__name__)

positive_seconds = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))
alert_timing_validator = vol.All(
    [vol.All(vol.Coerce(int), vol.In(sorted(ALERT_TIER_BOUNDS)))],
    vol.Unique(),
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional('playback_interval', default=PLAYBACK_INTERVAL): positive_seconds,
        vol.Optional('calendar_interval', default=CALENDAR_INTERVAL): positive_seconds,
        vol.Optional('backend_timeout', default=BACKEND_TIMEOUT): positive_seconds,
        vol.Optional('store_timeout', default=STORE_TIMEOUT): positive_seconds,
        vol.Optional('hover_debounce', default=HOVER_DEBOUNCE): positive_seconds,
        vol.Optional('upcoming_horizon_minutes', default=UPCOMING_HORIZON_MINUTES):
            vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional('player_priority', default=list): [vol.All(str, vol.Length(min=1))],
        vol.Optional('alert_timing', default=lambda: list(DEFAULT_ALERT_TIMING)): alert_timing_validator,
        vol.Optional('enable_media', default=True): bool,
        vol.Optional('enable_calendar', default=True): bool,
        vol.Optional('enable_calendar_alerts', default=True): bool,
        vol.Optional('show_canceled_events', default=False): bool,
        vol.Optional('max_events_to_display', default=MAX_EVENTS_TO_DISPLAY):
            vol.All(vol.Coerce(int), vol.Range(min=1)),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclasses.dataclass(frozen=True)
class EngineConfig:
    """Validated, immutable engine options."""

    playback_interval: float = PLAYBACK_INTERVAL
    calendar_interval: float = CALENDAR_INTERVAL
    backend_timeout: float = BACKEND_TIMEOUT
    store_timeout: float = STORE_TIMEOUT
    hover_debounce: float = HOVER_DEBOUNCE
    upcoming_horizon_minutes: int = UPCOMING_HORIZON_MINUTES
    # Tie-break order when several players are playing; earlier wins.
    player_priority: tuple[str, ...] = ()
    alert_timing: frozenset[int] = frozenset(DEFAULT_ALERT_TIMING)
    enable_media: bool = True
    enable_calendar: bool = True
    enable_calendar_alerts: bool = True
    show_canceled_events: bool = False
    # Day views keep at most this many events, earliest first.
    max_events_to_display: int = MAX_EVENTS_TO_DISPLAY

    @classmethod
    def from_dict(cls, options: dict[str, Any] | None = None) -> EngineConfig:
        """
        Validate options and build a config.

        Raises voluptuous.Invalid on bad input; unknown keys are dropped.
        """
        data = CONFIG_SCHEMA(dict(options or {}))
        data['player_priority'] = tuple(data['player_priority'])
        data['alert_timing'] = frozenset(data['alert_timing'])
        _LOGGER.debug("Engine configuration: %s", data)
        return cls(**data)
