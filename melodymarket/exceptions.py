"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MelodyMarketError(Exception):
    """Base exception for all application-specific errors."""


class StorageError(MelodyMarketError):
    """Base class for failures of the underlying key-value storage."""


class StorageReadError(StorageError):
    """Raised when a persisted value cannot be read or is malformed."""


class StorageWriteError(StorageError):
    """
    Raised when the storage medium rejects a write (disk full, read-only,
    unavailable). Previously persisted state is left untouched.
    """


class PlaybackError(MelodyMarketError):
    """Raised when a sound resource fails to load, probe or play."""


class ValidationError(MelodyMarketError):
    """Raised when an album draft is incomplete or invalid before upload."""


class CatalogError(MelodyMarketError):
    """Raised when a catalog action refers to a missing user or album."""


class ConfigurationError(MelodyMarketError):
    """Raised for issues related to configuration loading or validation."""
