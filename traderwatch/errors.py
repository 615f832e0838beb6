"""Exception types shared across the monitor."""


class TraderWatchError(Exception):
    """Base class for errors raised by traderwatch."""


class StoreError(TraderWatchError):
    """A persistence operation failed."""


class PositionFetchError(TraderWatchError):
    """The position source could not produce a snapshot."""


class NotificationError(TraderWatchError):
    """An outbound notification was not delivered."""


class ConfigError(TraderWatchError):
    """Settings are missing or inconsistent."""
