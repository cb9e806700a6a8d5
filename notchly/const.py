DOMAIN = "notchly"
VERSION = "0.3.0"

# Ticker intervals (seconds)
PLAYBACK_INTERVAL = 2.0      # media players: process lookups are comparatively expensive
CALENDAR_INTERVAL = 1.0      # calendar alerts need second-level countdown resolution

# Per-call bounds (seconds)
BACKEND_TIMEOUT = 2.0        # any single PlayerBackend query
STORE_TIMEOUT = 2.0          # any single CalendarEventStore query

# Hover coalescing window (seconds)
HOVER_DEBOUNCE = 0.1

# Upcoming-event candidate window
UPCOMING_HORIZON_MINUTES = 90

# Calendar day views
MAX_EVENTS_TO_DISPLAY = 15
CANCELED_STATUSES = frozenset({"canceled", "cancelled"})

# Alert tier upper bounds in seconds, keyed by the alert_timing value that enables them.
# Evaluated narrowest first; a disabled bucket falls through to the next enabled one.
ALERT_TIER_BOUNDS: dict[int, int] = {
    1:  60,    # second-by-second countdown
    5:  300,   # "5m"
    15: 900,   # "15m"
}
DEFAULT_ALERT_TIMING = [1, 5, 15]

# Delay before re-polling players after a control command (seconds)
CONTROL_REFRESH_DELAY = 0.2
TRACK_CHANGE_REFRESH_DELAY = 0.5

# Player durations at or below this are treated as "unknown" (streams, loading tracks)
MIN_VALID_DURATION = 1.0

# Calendar feed store
FEED_REQUEST_TIMEOUT = 5     # seconds, multiplied by attempt number for each retry
FEED_REQUEST_ATTEMPTS = 3
STORE_CHANGE_COALESCE = 2.0  # change notifications closer than this are merged

VOLUME_MIN = 0
VOLUME_MAX = 100
