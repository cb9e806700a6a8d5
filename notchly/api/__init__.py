"""Capabilities of the external collaborators Notchly polls."""
from .calendar import CalendarEventStore, InMemoryCalendarEventStore
from .calendar_feed import CalendarFeedError, HttpCalendarEventStore
from .player import PlayerBackend, call_backend

__all__ = [
    "CalendarEventStore",
    "CalendarFeedError",
    "HttpCalendarEventStore",
    "InMemoryCalendarEventStore",
    "PlayerBackend",
    "call_backend",
]
