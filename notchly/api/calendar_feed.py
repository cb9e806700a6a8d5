"""
HTTP calendar store reading a JSON event feed.

The feed answers GET <url>?start=<iso>&end=<iso> with
    {"events": [{"id": ..., "title": ..., "start": iso, "end": iso,
                 "all_day": bool, "status": str, "attendees": [str]}]}

Requests are retried on timeout with a growing per-attempt budget; HTTP 401
and 403 mark calendar authorization as denied until a later fetch succeeds.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable

import aiohttp

from ..const import FEED_REQUEST_ATTEMPTS, FEED_REQUEST_TIMEOUT, STORE_CHANGE_COALESCE
from ..models import CalendarEvent
from .calendar import ChangeCallback, ChangeListeners

_LOGGER = logging.getLogger(__name__)

_MAX_REMEMBERED_RANGES = 8


class CalendarFeedError(Exception):
    """Raised when the feed answers with an error or an unreadable body."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


async def fetch_feed(
    url: str,
    params: dict,
    headers: dict | None = None,
    timeout: int = FEED_REQUEST_TIMEOUT,
    max_attempts: int = FEED_REQUEST_ATTEMPTS,
) -> dict:
    """
    GET the feed and return its parsed JSON body.

    Raises:
        asyncio.TimeoutError: If every attempt timed out
        CalendarFeedError: For non-200 responses or non-JSON bodies
    """
    for attempt in range(max_attempts):
        timeout_config = aiohttp.ClientTimeout(total=timeout * (attempt + 1))
        try:
            async with aiohttp.ClientSession(timeout=timeout_config) as session:
                async with session.get(url, headers=headers or {}, params=params) as response:
                    return await _process_response(response, url)
        except (asyncio.TimeoutError, TimeoutError):
            if attempt < max_attempts - 1:
                continue
            _LOGGER.warning("Timeout fetching calendar feed %s after %s attempts", url, max_attempts)
            raise
    raise CalendarFeedError(f"No attempts made against {url}")


async def _process_response(response: aiohttp.ClientResponse, url: str) -> dict:
    content_type = response.headers.get('Content-Type', '')

    if response.status != 200:
        text = await response.text()
        _LOGGER.warning(
            "Calendar feed %s returned HTTP %s, body preview: %s",
            url, response.status, text[:200],
        )
        raise CalendarFeedError(f"HTTP {response.status} from {url}", status=response.status)

    if 'application/json' not in content_type:
        text = await response.text()
        raise CalendarFeedError(f"Expected JSON but got {content_type}: {text[:200]}", status=200)

    return await response.json()


def parse_events(raw_json: dict) -> list[CalendarEvent]:
    """Parse the feed body; malformed entries are skipped, not fatal."""
    events: list[CalendarEvent] = []
    for raw in raw_json.get("events") or []:
        try:
            events.append(CalendarEvent.from_dict(raw))
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.debug("Skipping malformed calendar entry %s: %s", raw, exc)
    return events


class HttpCalendarEventStore:
    """CalendarEventStore over a JSON HTTP feed."""

    def __init__(self, url: str, headers: dict | None = None) -> None:
        self._url = url
        self._headers = dict(headers or {})
        # None until the first response tells us either way
        self._authorized: bool | None = None
        self._listeners = ChangeListeners()
        self._snapshots: dict[tuple[datetime, datetime], list[CalendarEvent]] = {}
        self._last_change_fired: float | None = None

    async def events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        params = {"start": start.isoformat(), "end": end.isoformat()}
        try:
            raw_json = await fetch_feed(self._url, params, self._headers)
        except CalendarFeedError as exc:
            if exc.status in (401, 403):
                self._set_authorized(False)
                return []
            raise

        self._set_authorized(True)
        events = parse_events(raw_json)
        self._remember(start, end, events)
        return events

    async def authorization_granted(self) -> bool:
        return self._authorized is not False

    def add_change_listener(self, callback: ChangeCallback) -> Callable[[], None]:
        return self._listeners.add(callback)

    def _set_authorized(self, authorized: bool) -> None:
        previous = self._authorized
        self._authorized = authorized
        if previous is not None and previous != authorized:
            _LOGGER.info("Calendar feed authorization changed: %s -> %s", previous, authorized)
            self._notify_changed()

    def _remember(self, start: datetime, end: datetime, events: list[CalendarEvent]) -> None:
        key = (start, end)
        previous = self._snapshots.get(key)
        if len(self._snapshots) >= _MAX_REMEMBERED_RANGES and key not in self._snapshots:
            self._snapshots.clear()
        self._snapshots[key] = events
        if previous is None or previous == events:
            return

        delta = len(events) - len(previous)
        if delta > 0:
            _LOGGER.info("New calendar event(s) detected: +%d (%d total)", delta, len(events))
        elif delta < 0:
            _LOGGER.info("Calendar event(s) removed: %d (%d total)", delta, len(events))
        else:
            _LOGGER.info("Calendar events edited (%d total)", len(events))
        self._notify_changed()

    def _notify_changed(self) -> None:
        now = time.monotonic()
        if self._last_change_fired is not None and now - self._last_change_fired < STORE_CHANGE_COALESCE:
            return
        self._last_change_fired = now
        self._listeners.fire()
