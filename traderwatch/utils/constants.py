"""Shared constants and defaults."""

# Poll interval bounds in seconds; the monitor ticks once per second
MIN_POLL_INTERVAL = 1
MAX_POLL_INTERVAL = 24 * 3600

# Listing endpoints
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500
