from typing import Optional


class WeatherClientError(Exception):
    pass


class TransientNetworkError(WeatherClientError):
    """Transport failure, timeout or non-success status. Safe to retry."""


class TerminalFetchError(WeatherClientError):
    """Raised once every retry attempt has failed."""


class DecodeError(WeatherClientError):
    """Provider answered, but the payload could not be decoded."""


class GeocodingError(WeatherClientError):
    pass


class PersistenceError(WeatherClientError):
    """Cache file could not be read or written. Never leaves the cache."""


class PartialResultWarning(WeatherClientError):
    """One side of a dual fetch is missing from the result."""

    def __init__(self, key: str, cause: Optional[BaseException] = None, timed_out: bool = False):
        self.key = key
        self.cause = cause
        self.timed_out = timed_out
        reason = "timed out" if timed_out else f"failed: {cause}"
        super().__init__(f"{key} {reason}")
