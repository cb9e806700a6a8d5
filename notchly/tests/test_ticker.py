"""
Tests for Ticker: immediate first tick, sequential ticks, early ticks on
request, surviving callback errors, and shutdown.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock

from notchly.ticker import Ticker


class TestTicker(unittest.IsolatedAsyncioTestCase):

    async def test_first_tick_runs_immediately(self):
        callback = AsyncMock()
        ticker = Ticker("test", 10, callback)
        ticker.start()
        await asyncio.sleep(0.01)

        callback.assert_awaited_once()
        await ticker.stop()

    async def test_ticks_repeat_at_interval(self):
        callback = AsyncMock()
        ticker = Ticker("test", 0.02, callback)
        ticker.start()
        await asyncio.sleep(0.11)
        await ticker.stop()

        self.assertGreaterEqual(callback.await_count, 3)

    async def test_ticks_never_overlap(self):
        active = 0
        max_active = 0

        async def slow_tick():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.03)
            active -= 1

        ticker = Ticker("test", 0.001, slow_tick)
        ticker.start()
        ticker.request_tick()
        ticker.request_tick()
        await asyncio.sleep(0.1)
        await ticker.stop()

        self.assertEqual(max_active, 1)

    async def test_request_tick_cuts_wait_short(self):
        callback = AsyncMock()
        ticker = Ticker("test", 10, callback)
        ticker.start()
        await asyncio.sleep(0.01)

        ticker.request_tick()
        await asyncio.sleep(0.01)

        self.assertEqual(callback.await_count, 2)
        await ticker.stop()

    async def test_request_tick_ignored_when_stopped(self):
        callback = AsyncMock()
        ticker = Ticker("test", 10, callback)

        ticker.request_tick()
        await asyncio.sleep(0.01)

        callback.assert_not_awaited()

    async def test_callback_error_does_not_stop_ticker(self):
        callback = AsyncMock(side_effect=[RuntimeError("boom"), None, None, None, None, None])
        ticker = Ticker("test", 0.02, callback)
        ticker.start()
        await asyncio.sleep(0.07)

        self.assertTrue(ticker.running)
        self.assertGreaterEqual(callback.await_count, 2)
        await ticker.stop()

    async def test_stop_cancels_worker(self):
        ticker = Ticker("test", 10, AsyncMock())
        ticker.start()
        self.assertTrue(ticker.running)

        await ticker.stop()

        self.assertFalse(ticker.running)
        # idempotent
        await ticker.stop()

    async def test_restart_after_stop(self):
        callback = AsyncMock()
        ticker = Ticker("test", 10, callback)
        ticker.start()
        await asyncio.sleep(0.01)
        await ticker.stop()

        ticker.start()
        await asyncio.sleep(0.01)

        self.assertEqual(callback.await_count, 2)
        await ticker.stop()
