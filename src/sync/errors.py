"""Exception hierarchy for the offline sync layer.

Storage faults are raised to the caller, never swallowed: a lost queue
write is a lost clinical mutation.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync-layer failures."""


class StorageError(SyncError):
    """The durable key-value store could not be read or written."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class QueueCorruptedError(StorageError):
    """The persisted queue exists but cannot be decoded."""


class RemoteSyncError(SyncError):
    """The remote data collaborator failed or returned an error response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
