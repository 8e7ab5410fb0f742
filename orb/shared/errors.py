"""
Exception hierarchy for the Orb engine.

Fatal conditions abort the daily batch before any state is written;
everything else is reported through result objects.
"""


class OrbError(Exception):
    """Base class for all Orb errors."""
    pass


class PriceFetchError(OrbError):
    """Raised when the price source fails after the retry."""
    pass


class InsufficientHistoryError(OrbError):
    """Raised when fewer usable bars remain than the indicators require."""
    pass


class StateStoreError(OrbError):
    """Raised when persisted state cannot be read or written."""
    pass


class ConfigError(OrbError):
    """Raised when the YAML configuration is malformed."""
    pass


class InvalidDateError(OrbError):
    """Raised when a date argument is not in YYYY-MM-DD form."""
    pass
