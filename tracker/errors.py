"""
Error types shared by the store, the API layer and the client.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker errors."""


class RecordNotFoundError(TrackerError):
    """Raised when an update references an id that is not in the collection."""

    def __init__(self, kind, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.display_name} not found")


class StorageWriteError(TrackerError):
    """Raised when a collection could not be persisted."""


class NetworkFailureError(TrackerError):
    """Raised by the HTTP backend when the server cannot be reached or answers badly."""
