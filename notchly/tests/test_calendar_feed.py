"""
Tests for the HTTP calendar feed: response handling, retries, parsing and
the store's authorization and change tracking.
"""

from __future__ import annotations

import asyncio
import unittest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

from notchly.api.calendar_feed import (
    CalendarFeedError,
    HttpCalendarEventStore,
    fetch_feed,
    parse_events,
)

from .test_common import at

FEED_URL = "https://calendar.example.test/feed"


def _feed_body(*entries):
    return {"events": list(entries)}


def _entry(event_id, start, end, **kwargs):
    entry = {"id": event_id, "title": f"Event {event_id}", "start": start.isoformat(), "end": end.isoformat()}
    entry.update(kwargs)
    return entry


def _mock_session(status=200, body=None, content_type="application/json", text=""):
    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": content_type}
    response.json = AsyncMock(return_value=body if body is not None else {})
    response.text = AsyncMock(return_value=text)

    request = MagicMock()
    request.__aenter__ = AsyncMock(return_value=response)
    request.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=request)
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


class TestFetchFeed(unittest.IsolatedAsyncioTestCase):

    async def test_json_body_returned(self):
        session = _mock_session(body=_feed_body())
        with patch("notchly.api.calendar_feed.aiohttp.ClientSession", return_value=session):
            result = await fetch_feed(FEED_URL, {"start": "a", "end": "b"})

        self.assertEqual(result, {"events": []})
        session.get.assert_called_once_with(FEED_URL, headers={}, params={"start": "a", "end": "b"})

    async def test_http_error_carries_status(self):
        session = _mock_session(status=403, text="forbidden")
        with patch("notchly.api.calendar_feed.aiohttp.ClientSession", return_value=session):
            with self.assertRaises(CalendarFeedError) as ctx:
                await fetch_feed(FEED_URL, {})

        self.assertEqual(ctx.exception.status, 403)

    async def test_non_json_body_rejected(self):
        session = _mock_session(content_type="text/html", text="<html>login</html>")
        with patch("notchly.api.calendar_feed.aiohttp.ClientSession", return_value=session):
            with self.assertRaises(CalendarFeedError):
                await fetch_feed(FEED_URL, {})

    async def test_timeout_retried_then_raised(self):
        session = _mock_session()
        session.get.side_effect = asyncio.TimeoutError()
        with patch("notchly.api.calendar_feed.aiohttp.ClientSession", return_value=session):
            with self.assertRaises(asyncio.TimeoutError):
                await fetch_feed(FEED_URL, {}, max_attempts=2)

        self.assertEqual(session.get.call_count, 2)

    async def test_timeout_then_success(self):
        session = _mock_session(body=_feed_body())
        good_request = session.get.return_value
        session.get.side_effect = [asyncio.TimeoutError(), good_request]
        with patch("notchly.api.calendar_feed.aiohttp.ClientSession", return_value=session):
            result = await fetch_feed(FEED_URL, {}, max_attempts=3)

        self.assertEqual(result, {"events": []})


class TestParseEvents(unittest.TestCase):

    def test_entries_parsed(self):
        events = parse_events(_feed_body(
            _entry("A", at(9), at(10), attendees=["ana@example.test"]),
            _entry("B", at(0), at(0, days=1), all_day=True),
        ))

        self.assertEqual([e.id for e in events], ["A", "B"])
        self.assertEqual(events[0].start_time, at(9))
        self.assertEqual(events[0].attendees, ("ana@example.test",))
        self.assertTrue(events[1].is_all_day)

    def test_malformed_entries_skipped(self):
        events = parse_events(_feed_body(
            {"id": "no-dates"},
            _entry("backwards", at(10), at(9)),
            {"id": "bad", "start": "not a date", "end": "nope"},
            _entry("ok", at(9), at(10)),
        ))

        self.assertEqual([e.id for e in events], ["ok"])

    def test_times_without_offset_become_local_aware(self):
        events = parse_events(_feed_body(
            {"id": "A", "title": "Standup", "start": "2026-10-18T09:00:45", "end": "2026-10-18T09:30:00"},
        ))

        self.assertIsNotNone(events[0].start_time.tzinfo)
        self.assertEqual(events[0].start_time, datetime(2026, 10, 18, 9, 0, 45).astimezone())
        self.assertEqual(events[0].end_time, datetime(2026, 10, 18, 9, 30).astimezone())

    def test_missing_events_key(self):
        self.assertEqual(parse_events({}), [])


class TestHttpCalendarEventStore(unittest.IsolatedAsyncioTestCase):

    async def test_events_fetched_for_range(self):
        store = HttpCalendarEventStore(FEED_URL, headers={"Authorization": "Bearer t"})
        fetch = AsyncMock(return_value=_feed_body(_entry("A", at(9), at(10))))
        with patch("notchly.api.calendar_feed.fetch_feed", fetch):
            events = await store.events(at(0), at(0, days=1))

        self.assertEqual([e.id for e in events], ["A"])
        url, params, headers = fetch.await_args.args
        self.assertEqual(url, FEED_URL)
        self.assertEqual(params, {"start": at(0).isoformat(), "end": at(0, days=1).isoformat()})
        self.assertEqual(headers, {"Authorization": "Bearer t"})

    async def test_authorization_unknown_until_first_response(self):
        store = HttpCalendarEventStore(FEED_URL)
        self.assertTrue(await store.authorization_granted())

    async def test_denied_then_granted(self):
        store = HttpCalendarEventStore(FEED_URL)
        changes = []
        store.add_change_listener(lambda: changes.append(1))

        denied = AsyncMock(side_effect=CalendarFeedError("HTTP 401", status=401))
        with patch("notchly.api.calendar_feed.fetch_feed", denied):
            self.assertEqual(await store.events(at(0), at(0, days=1)), [])
        self.assertFalse(await store.authorization_granted())

        granted = AsyncMock(return_value=_feed_body())
        with patch("notchly.api.calendar_feed.fetch_feed", granted):
            await store.events(at(0), at(0, days=1))
        self.assertTrue(await store.authorization_granted())
        self.assertEqual(len(changes), 1)

    async def test_server_error_propagates(self):
        store = HttpCalendarEventStore(FEED_URL)
        failing = AsyncMock(side_effect=CalendarFeedError("HTTP 500", status=500))
        with patch("notchly.api.calendar_feed.fetch_feed", failing):
            with self.assertRaises(CalendarFeedError):
                await store.events(at(0), at(0, days=1))

    async def test_changed_snapshot_notifies_once_within_window(self):
        store = HttpCalendarEventStore(FEED_URL)
        changes = []
        remove = store.add_change_listener(lambda: changes.append(1))
        bodies = [
            _feed_body(_entry("A", at(9), at(10))),
            _feed_body(_entry("A", at(9), at(10))),
            _feed_body(_entry("A", at(9), at(10)), _entry("B", at(11), at(12))),
            _feed_body(_entry("A", at(9), at(10))),
        ]
        with patch("notchly.api.calendar_feed.fetch_feed", AsyncMock(side_effect=bodies)):
            for _ in bodies:
                await store.events(at(0), at(0, days=1))

        # first fetch is a baseline, the identical one is silent, and the
        # removal right after the addition is merged into one notification
        self.assertEqual(len(changes), 1)

        remove()
        self.assertEqual(len(store._listeners), 0)
