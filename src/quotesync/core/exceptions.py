"""Error taxonomy for quote management and sync.

Every error here is recovered at the boundary where it occurs and turned
into a status signal; none of them is meant to halt the application.
"""

from __future__ import annotations


class QuoteSyncError(Exception):
    """Base class for all quotesync errors."""


class QuoteValidationError(QuoteSyncError, ValueError):
    """A candidate record is missing text or category (or they are blank)."""

    def __init__(self, reason: str, candidate: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.candidate = candidate


class StorageError(QuoteSyncError):
    """Durable or session storage could not be read or written."""


class TransportError(QuoteSyncError):
    """A remote call failed after retries (network, timeout, or HTTP status)."""


class ImportFormatError(QuoteSyncError, ValueError):
    """An import payload is not a JSON list; the whole import is rejected."""
