"""Exceptions that abort a whole operation.

Per-origin problems (bad fetches, failed writes) never surface as these;
the scheduler turns them into counters.
"""


class ScannerError(Exception):
    """Base class for scan-level failures."""


class SourceNotFoundError(ScannerError):
    """The origin list file does not exist."""


class StoreError(ScannerError):
    """The durable store cannot be used."""


class StoreInitializationError(StoreError):
    """The store could not be opened or its schema created."""


class StoreNotReadyError(StoreError):
    """An operation was attempted while the store was not open."""
