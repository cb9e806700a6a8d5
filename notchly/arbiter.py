"""
PlaybackSourceArbiter — decides which media player Notchly surfaces.

Responsibilities:
- Poll every PlayerBackend on its own ticker, each call bounded by a timeout.
- Pick at most one active source, with fallback memory and stability bias.
- Fetch and normalise the winner's now-playing snapshot.
- Publish a PlaybackUpdate after every tick.
- Forward media controls to the active backend.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from .api.player import PlayerBackend, call_backend
from .bus import EventBus, PlaybackUpdate
from .const import (
    BACKEND_TIMEOUT,
    CONTROL_REFRESH_DELAY,
    MIN_VALID_DURATION,
    PLAYBACK_INTERVAL,
    TRACK_CHANGE_REFRESH_DELAY,
    VOLUME_MAX,
    VOLUME_MIN,
)
from .models import ActiveSource, ArbiterResult, PlaybackSnapshot
from .playback_utils import normalize_snapshot
from .ticker import Ticker

_LOGGER = logging.getLogger(__name__)


def choose_source(
    running: Sequence[str],
    playing: Iterable[str],
    fallback_id: str | None,
    priority: Sequence[str],
) -> tuple[str | None, str | None]:
    """
    Pure arbitration step.

    running is every backend that answered "running" this tick, in
    registration order; playing is the subset reported as playing (only
    consulted when more than one backend runs).  Returns
    (result_id, new_fallback_id).
    """
    if not running:
        return None, None

    if len(running) == 1:
        return running[0], running[0]

    playing_set = set(playing)
    playing_ids = [source_id for source_id in running if source_id in playing_set]

    if len(playing_ids) == 1:
        return playing_ids[0], playing_ids[0]

    if not playing_ids:
        if fallback_id in running:
            return fallback_id, fallback_id
        return None, fallback_id

    # Several playing: the incumbent wins, otherwise the static priority does.
    if fallback_id in playing_ids:
        return fallback_id, fallback_id

    def rank(source_id: str) -> tuple[int, int]:
        if source_id in priority:
            return 0, priority.index(source_id)
        return 1, running.index(source_id)

    winner = min(playing_ids, key=rank)
    return winner, winner


class PlaybackSourceArbiter:
    """
    Owns the fallback memory and the latest ArbiterResult.

    Nothing outside this class writes either; readers get immutable values.
    """

    def __init__(
        self,
        backends: Iterable[PlayerBackend],
        bus: EventBus | None = None,
        priority: Sequence[str] = (),
        timeout: float = BACKEND_TIMEOUT,
        interval: float = PLAYBACK_INTERVAL,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._backends: dict[str, PlayerBackend] = {}
        for backend in backends:
            if backend.source_id in self._backends:
                raise ValueError(f"Duplicate player backend {backend.source_id!r}")
            self._backends[backend.source_id] = backend
        self._bus = bus
        self._priority = tuple(priority)
        self._timeout = timeout
        self._now = now or (lambda: datetime.now(timezone.utc))

        self._lock = asyncio.Lock()
        self._fallback: ActiveSource | None = None
        self._result = ArbiterResult()
        self._last_valid_duration: dict[str, float] = {}
        self._refresh_tasks: set[asyncio.Task] = set()

        self.ticker = Ticker("playback", interval, self.async_tick)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def result(self) -> ArbiterResult:
        return self._result

    @property
    def active_source(self) -> ActiveSource | None:
        """Fallback memory: the last chosen source, even when nothing plays."""
        return self._fallback

    @property
    def source_ids(self) -> list[str]:
        return list(self._backends)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def async_tick(self) -> None:
        """Ticker entry point: evaluate and publish."""
        result = await self.async_evaluate()
        if self._bus is not None:
            self._bus.publish(PlaybackUpdate(result))

    async def async_evaluate(self) -> ArbiterResult:
        """Run one arbitration.  Never raises for backend failures."""
        async with self._lock:
            running = await self._query_running()

            playing: set[str] = set()
            if len(running) > 1:
                running, playing = await self._query_playing(running)

            fallback_id = self._fallback.source_id if self._fallback else None
            result_id, new_fallback_id = choose_source(
                running, playing, fallback_id, self._priority
            )

            result = await self._build_result(result_id, playing if len(running) > 1 else None)
            self._commit(result, new_fallback_id)
            return result

    async def _query_running(self) -> list[str]:
        answers = await asyncio.gather(*[
            call_backend(source_id, "is_app_running", backend.is_app_running, self._timeout, None)
            for source_id, backend in self._backends.items()
        ])
        return [source_id for source_id, answer in zip(self._backends, answers) if answer]

    async def _query_playing(self, running: list[str]) -> tuple[list[str], set[str]]:
        answers = await asyncio.gather(*[
            call_backend(source_id, "is_playing", self._backends[source_id].is_playing, self._timeout, None)
            for source_id in running
        ])
        still_running: list[str] = []
        playing: set[str] = set()
        for source_id, answer in zip(running, answers):
            # A failed playing query counts as "not running" for this tick
            if answer is None:
                continue
            still_running.append(source_id)
            if answer:
                playing.add(source_id)
        return still_running, playing

    async def _build_result(self, source_id: str | None, playing: set[str] | None) -> ArbiterResult:
        if source_id is None:
            return ArbiterResult()

        backend = self._backends[source_id]
        snapshot = await call_backend(source_id, "now_playing", backend.now_playing, self._timeout, None)
        if snapshot is not None:
            snapshot = self._normalize(source_id, snapshot)

        if playing is not None:
            is_playing = source_id in playing
        elif snapshot is not None:
            is_playing = snapshot.is_playing
        else:
            is_playing = bool(
                await call_backend(source_id, "is_playing", backend.is_playing, self._timeout, False)
            )
        return ArbiterResult(source_id=source_id, snapshot=snapshot, is_playing=is_playing)

    def _normalize(self, source_id: str, snapshot: PlaybackSnapshot) -> PlaybackSnapshot:
        if snapshot.source_id != source_id:
            snapshot = dataclasses.replace(snapshot, source_id=source_id)
        snapshot = normalize_snapshot(snapshot, self._last_valid_duration.get(source_id))
        if snapshot.duration_sec > MIN_VALID_DURATION:
            self._last_valid_duration[source_id] = snapshot.duration_sec
        return snapshot

    def _commit(self, result: ArbiterResult, fallback_id: str | None) -> None:
        previous = self._result
        if fallback_id is None:
            self._fallback = None
            self._last_valid_duration.clear()
        elif result.source_id == fallback_id and result.is_playing:
            self._fallback = ActiveSource(fallback_id, last_playing_at=self._now())
        elif self._fallback is None or self._fallback.source_id != fallback_id:
            self._fallback = ActiveSource(fallback_id)

        self._result = result
        if previous.source_id != result.source_id or previous.is_playing != result.is_playing:
            _LOGGER.info(
                "Active player: %s (playing=%s) -> %s (playing=%s)",
                previous.source_id, previous.is_playing, result.source_id, result.is_playing,
            )

    # ------------------------------------------------------------------
    # Media controls, best effort, routed to the current active source
    # ------------------------------------------------------------------

    async def async_play_pause(self) -> None:
        await self._control("play_pause", lambda b: b.play_pause(), CONTROL_REFRESH_DELAY)

    async def async_next_track(self) -> None:
        await self._control("next_track", lambda b: b.next_track(), TRACK_CHANGE_REFRESH_DELAY)

    async def async_previous_track(self) -> None:
        await self._control("previous_track", lambda b: b.previous_track(), TRACK_CHANGE_REFRESH_DELAY)

    async def async_seek(self, seconds: float) -> None:
        await self._control("seek", lambda b: b.seek(max(0.0, float(seconds))), CONTROL_REFRESH_DELAY)

    async def async_set_volume(self, percent: int) -> None:
        level = min(VOLUME_MAX, max(VOLUME_MIN, int(percent)))
        await self._control("set_volume", lambda b: b.set_volume(level), None)

    async def _control(self, operation: str, command, refresh_delay: float | None) -> None:
        source_id = self._result.source_id
        if source_id is None:
            _LOGGER.debug("Ignoring %s: no active player", operation)
            return
        backend = self._backends[source_id]
        try:
            await asyncio.wait_for(command(backend), timeout=self._timeout)
        except asyncio.TimeoutError:
            _LOGGER.error("%s.%s timed out", source_id, operation)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("%s.%s failed: %s", source_id, operation, exc)
        if refresh_delay is not None:
            self.request_refresh(refresh_delay)

    def request_refresh(self, delay: float = 0.0) -> None:
        """Ask the ticker for an early poll after delay seconds."""
        async def _delayed() -> None:
            await asyncio.sleep(delay)
            self.ticker.request_tick()

        task = asyncio.ensure_future(_delayed())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.ticker.start()

    async def async_shutdown(self) -> None:
        """Stop polling and drop pending refreshes."""
        await self.ticker.stop()
        for task in list(self._refresh_tasks):
            task.cancel()
        if self._refresh_tasks:
            await asyncio.gather(*self._refresh_tasks, return_exceptions=True)
        self._refresh_tasks.clear()
