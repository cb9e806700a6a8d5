"""
UpcomingEventMonitor — surfaces at most one imminent calendar event.

Every tick pulls today's events from the CalendarEventStore (bounded by a
timeout), picks the earliest event that has not started yet and starts
within the horizon, and buckets the time left into an alert tier.  Any
store problem reduces to "no alert" for that tick.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Collection, Iterable, TypeVar

from .api.calendar import CalendarEventStore
from .bus import AlertUpdate, EventBus
from .const import (
    ALERT_TIER_BOUNDS,
    CALENDAR_INTERVAL,
    DEFAULT_ALERT_TIMING,
    STORE_TIMEOUT,
    UPCOMING_HORIZON_MINUTES,
)
from .models import AlertTier, CalendarEvent, UpcomingAlert
from .ticker import Ticker

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_TIER_FOR_TIMING = {
    1: AlertTier.COUNTDOWN,
    5: AlertTier.FIVE_MINUTES,
    15: AlertTier.FIFTEEN_MINUTES,
}


def alert_tier(remaining: float, alert_timing: Collection[int] = DEFAULT_ALERT_TIMING) -> AlertTier:
    """
    Bucket seconds-until-start into a tier.

    Buckets are tried narrowest first; a bucket disabled in alert_timing is
    skipped so the next enabled, wider one applies.
    """
    for timing, bound in sorted(ALERT_TIER_BOUNDS.items(), key=lambda item: item[1]):
        if remaining <= bound and timing in alert_timing:
            return _TIER_FOR_TIMING[timing]
    return AlertTier.NONE


def _same_day(moment: datetime, now: datetime) -> bool:
    if moment.tzinfo is not None and now.tzinfo is not None:
        moment = moment.astimezone(now.tzinfo)
    return moment.date() == now.date()


def find_upcoming_event(
    events: Iterable[CalendarEvent],
    now: datetime,
    horizon_minutes: int = UPCOMING_HORIZON_MINUTES,
) -> CalendarEvent | None:
    """Earliest timed event starting later today and within the horizon."""
    cutoff = now + timedelta(minutes=horizon_minutes)
    candidates = [
        event for event in events
        if not event.is_all_day
        and _same_day(event.start_time, now)
        and now < event.start_time <= cutoff
    ]
    if not candidates:
        return None
    # stable: equal starts keep store order
    return sorted(candidates, key=lambda e: e.start_time)[0]


def compute_alert(
    events: Iterable[CalendarEvent],
    now: datetime,
    horizon_minutes: int = UPCOMING_HORIZON_MINUTES,
    alert_timing: Collection[int] = DEFAULT_ALERT_TIMING,
    dismissed: Collection[str] = (),
) -> UpcomingAlert | None:
    """The alert to show right now, or None."""
    event = find_upcoming_event(
        (e for e in events if e.id not in dismissed), now, horizon_minutes
    )
    if event is None:
        return None

    remaining = (event.start_time - now).total_seconds()
    tier = alert_tier(remaining, alert_timing)
    if tier is AlertTier.NONE:
        return None
    return UpcomingAlert(
        event_id=event.id,
        title=event.title,
        seconds_remaining=max(0, int(remaining)),
        tier=tier,
    )


class UpcomingEventMonitor:
    """Owns the latest UpcomingAlert and the ticker that refreshes it."""

    def __init__(
        self,
        store: CalendarEventStore,
        bus: EventBus | None = None,
        horizon_minutes: int = UPCOMING_HORIZON_MINUTES,
        alert_timing: Collection[int] = DEFAULT_ALERT_TIMING,
        timeout: float = STORE_TIMEOUT,
        interval: float = CALENDAR_INTERVAL,
        enabled: bool = True,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self._horizon_minutes = horizon_minutes
        self._alert_timing = frozenset(alert_timing)
        self._timeout = timeout
        self._enabled = enabled
        self._now = now or (lambda: datetime.now(timezone.utc).astimezone())

        self._alert: UpcomingAlert | None = None
        self._dismissed: set[str] = set()
        self._remove_listener: Callable[[], None] | None = None

        self.ticker = Ticker("calendar", interval, self.async_tick)

    @property
    def alert(self) -> UpcomingAlert | None:
        return self._alert

    def dismiss(self, event_id: str | None = None) -> None:
        """Hide the alert for event_id (default: the current one) until it starts."""
        event_id = event_id or (self._alert.event_id if self._alert else None)
        if event_id is None:
            return
        _LOGGER.debug("Dismissing calendar alert for %s", event_id)
        self._dismissed.add(event_id)
        self.ticker.request_tick()

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def async_tick(self) -> None:
        alert = await self.async_evaluate()
        if self._bus is not None:
            self._bus.publish(AlertUpdate(alert))

    async def async_evaluate(self) -> UpcomingAlert | None:
        """Compute and store the current alert.  Never raises for store failures."""
        alert = None
        if self._enabled:
            now = self._now()
            events = await self._fetch_today(now)
            try:
                self._forget_started(events, now)
                alert = compute_alert(
                    events, now, self._horizon_minutes, self._alert_timing, self._dismissed
                )
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Calendar alert evaluation failed: %s", exc)
                alert = None

        previous, self._alert = self._alert, alert
        if _alert_key(previous) != _alert_key(alert):
            _LOGGER.info(
                "Calendar alert: %s -> %s",
                _describe(previous), _describe(alert),
            )
        return alert

    async def _fetch_today(self, now: datetime) -> list[CalendarEvent]:
        authorized = await self._query_store("authorization_granted", self._store.authorization_granted, False)
        if not authorized:
            _LOGGER.debug("Calendar access not granted; no alert")
            return []

        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        events = await self._query_store(
            "events", lambda: self._store.events(start_of_day, end_of_day), None
        )
        return list(events or [])

    async def _query_store(self, operation: str, call: Callable[[], Awaitable[T]], default: T) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            _LOGGER.warning("Calendar store %s timed out after %.1fs", operation, self._timeout)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Calendar store %s failed: %s", operation, exc)
        return default

    def _forget_started(self, events: list[CalendarEvent], now: datetime) -> None:
        if not self._dismissed:
            return
        pending = {e.id for e in events if e.start_time > now}
        self._dismissed &= pending

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._remove_listener is None:
            self._remove_listener = self._store.add_change_listener(self.ticker.request_tick)
        self.ticker.start()

    async def async_shutdown(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        await self.ticker.stop()


def _alert_key(alert: UpcomingAlert | None) -> tuple | None:
    return None if alert is None else (alert.event_id, alert.tier)


def _describe(alert: UpcomingAlert | None) -> str:
    return "none" if alert is None else f"{alert.title!r} in {alert.label}"
