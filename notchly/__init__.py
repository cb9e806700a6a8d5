from __future__ import annotations

import logging
from typing import Any, Iterable

from .api.calendar import CalendarEventStore
from .api.player import PlayerBackend
from .config import EngineConfig
from .const import DOMAIN, VERSION
from .coordinator_data import CoordinatorData
from .engine import NotchlyEngine
from .models import ActivityKind, AlertTier, NotchState

__all__ = [
    "DOMAIN",
    "VERSION",
    "ActivityKind",
    "AlertTier",
    "CoordinatorData",
    "EngineConfig",
    "NotchState",
    "NotchlyEngine",
    "async_setup_engine",
    "async_unload_engine",
]

_LOGGER = logging.getLogger(__name__)


async def async_setup_engine(
    backends: Iterable[PlayerBackend],
    store: CalendarEventStore | None = None,
    options: dict[str, Any] | None = None,
) -> NotchlyEngine:
    """Validate options, build an engine and start it."""
    config = EngineConfig.from_dict(options)
    engine = NotchlyEngine(backends, store, config)
    await engine.async_start()
    return engine


async def async_unload_engine(engine: NotchlyEngine) -> bool:
    """Tear an engine down; safe to call twice."""
    try:
        await engine.async_shutdown()
    except Exception as e:  # noqa: BLE001
        _LOGGER.error(f"Failed to shut down notch engine: {e}")
        return False
    return True
