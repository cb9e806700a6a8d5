"""
NotchlyEngine — wires the monitors, bus and coordinator for one notch session.

Every collaborator is handed in explicitly; nothing here is a process-wide
singleton.  async_shutdown() stops every task the engine started so that
repeated show/hide cycles never leave competing monitors behind.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable

from .api.calendar import CalendarEventStore, InMemoryCalendarEventStore
from .api.player import PlayerBackend
from .arbiter import PlaybackSourceArbiter
from .bus import EventBus, HoverUpdate, IntroUpdate, SuspendUpdate
from .calendar_monitor import UpcomingEventMonitor
from .config import EngineConfig
from .const import CANCELED_STATUSES
from .conflicts import build_event_rows, detect_conflicts
from .coordinator import NotchActivityCoordinator
from .coordinator_data import CoordinatorData
from .debounce import HoverDebouncer
from .models import CalendarEvent, ConflictReport, RowItem

_LOGGER = logging.getLogger(__name__)


class NotchlyEngine:
    """Public surface consumed by the presentation layer."""

    def __init__(
        self,
        backends: Iterable[PlayerBackend] = (),
        store: CalendarEventStore | None = None,
        config: EngineConfig | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._now = now or (lambda: datetime.now(timezone.utc).astimezone())
        self.store = store if store is not None else InMemoryCalendarEventStore()

        self.bus = EventBus()
        self.coordinator = NotchActivityCoordinator(self.bus)
        self.arbiter = PlaybackSourceArbiter(
            backends,
            bus=self.bus,
            priority=self.config.player_priority,
            timeout=self.config.backend_timeout,
            interval=self.config.playback_interval,
            now=self._now,
        )
        self.monitor = UpcomingEventMonitor(
            self.store,
            bus=self.bus,
            horizon_minutes=self.config.upcoming_horizon_minutes,
            alert_timing=self.config.alert_timing,
            timeout=self.config.store_timeout,
            interval=self.config.calendar_interval,
            enabled=self.config.enable_calendar and self.config.enable_calendar_alerts,
            now=self._now,
        )
        self._hover = HoverDebouncer(self.config.hover_debounce, self._apply_hover)
        self._started = False
        self._suspended = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def data(self) -> CoordinatorData:
        return self.coordinator.data

    @property
    def started(self) -> bool:
        return self._started

    @property
    def suspended(self) -> bool:
        return self._suspended

    def async_add_listener(self, callback: Callable[[CoordinatorData], None]) -> Callable[[], None]:
        return self.coordinator.async_add_listener(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        if self._started:
            return
        _LOGGER.info(
            "Starting notch engine (players: %s)", ", ".join(self.arbiter.source_ids) or "none"
        )
        self._started = True
        self.coordinator.start()
        if not self._suspended:
            self._start_monitors()

    async def async_shutdown(self) -> None:
        """Stop every ticker and task owned by this engine."""
        if not self._started:
            return
        _LOGGER.info("Shutting down notch engine")
        self._started = False
        self._hover.cancel()
        await asyncio.gather(
            self.arbiter.async_shutdown(),
            self.monitor.async_shutdown(),
        )
        await self.coordinator.async_shutdown()
        if self._suspended:
            # a later start must not come up frozen
            self._suspended = False
            self.coordinator.apply(SuspendUpdate(False))

    def _start_monitors(self) -> None:
        if self.config.enable_media:
            self.arbiter.start()
        if self.config.enable_calendar:
            self.monitor.start()

    async def _stop_monitors(self) -> None:
        await asyncio.gather(self.arbiter.ticker.stop(), self.monitor.ticker.stop())

    # ------------------------------------------------------------------
    # Inputs from the host
    # ------------------------------------------------------------------

    def hover(self, hovering: bool) -> None:
        """Raw pointer enter/exit over the notch; debounced before it applies."""
        self._hover.push(bool(hovering))

    def _apply_hover(self, hovering: bool) -> None:
        self.bus.publish(HoverUpdate(hovering))

    def set_intro_active(self, active: bool) -> None:
        self.bus.publish(IntroUpdate(bool(active)))

    async def async_suspend_updates(self) -> None:
        """Freeze the notch and stop polling, e.g. before the host sleeps."""
        if self._suspended:
            return
        self._suspended = True
        self.coordinator.post(SuspendUpdate(True))
        if self._started:
            await self._stop_monitors()

    async def async_resume_updates(self) -> None:
        """Unfreeze and re-evaluate immediately; monitors tick right away."""
        if not self._suspended:
            return
        self._suspended = False
        self.coordinator.post(SuspendUpdate(False))
        if self._started:
            self._start_monitors()

    def dismiss_alert(self, event_id: str | None = None) -> None:
        self.monitor.dismiss(event_id)

    # ------------------------------------------------------------------
    # Media controls
    # ------------------------------------------------------------------

    async def async_play_pause(self) -> None:
        await self.arbiter.async_play_pause()

    async def async_next_track(self) -> None:
        await self.arbiter.async_next_track()

    async def async_previous_track(self) -> None:
        await self.arbiter.async_previous_track()

    async def async_seek(self, seconds: float) -> None:
        await self.arbiter.async_seek(seconds)

    async def async_set_volume(self, percent: int) -> None:
        await self.arbiter.async_set_volume(percent)

    # ------------------------------------------------------------------
    # Calendar day views
    # ------------------------------------------------------------------

    async def async_conflicts_for_day(self, day: date) -> ConflictReport:
        return detect_conflicts(await self._events_for_day(day))

    async def async_event_rows_for_day(self, day: date) -> list[RowItem]:
        events = await self._events_for_day(day)
        return build_event_rows(events, detect_conflicts(events))

    async def _events_for_day(self, day: date) -> list[CalendarEvent]:
        """
        The store's events starting on day, earliest first.

        Canceled events are dropped unless show_canceled_events is set and the
        list is capped at max_events_to_display.  Empty on denial, failure or
        timeout.
        """
        tzinfo = self._now().tzinfo
        start = datetime.combine(day, time.min, tzinfo=tzinfo)
        end = start + timedelta(days=1)
        try:
            if not await asyncio.wait_for(self.store.authorization_granted(), self.config.store_timeout):
                return []
            events = await asyncio.wait_for(self.store.events(start, end), self.config.store_timeout)
        except asyncio.TimeoutError:
            _LOGGER.warning("Calendar store timed out loading %s", day)
            return []
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Calendar store failed loading %s: %s", day, exc)
            return []
        events = [e for e in events if _starts_on(e, day, tzinfo)]
        if not self.config.show_canceled_events:
            events = [e for e in events if e.status.lower() not in CANCELED_STATUSES]
        # stable: equal starts keep store order
        events.sort(key=lambda e: e.start_time)
        return events[:self.config.max_events_to_display]


def _starts_on(event: CalendarEvent, day: date, tzinfo) -> bool:
    start = event.start_time
    if start.tzinfo is not None and tzinfo is not None:
        start = start.astimezone(tzinfo)
    return start.date() == day
