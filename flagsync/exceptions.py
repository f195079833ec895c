"""Exception types shared by all FlagSync components."""

from typing import Optional


class FlagSyncError(Exception):
    """Base exception for FlagSync errors."""


class ArgumentError(FlagSyncError, ValueError):
    """Raised when a storage entry is constructed from invalid input."""


class StorageAccessError(FlagSyncError):
    """Raised when a storage backend fails to read, write or delete an entry.

    Backends translate their native errors (``OSError``, ``ftplib`` errors,
    ...) into this type so the job engine never has to branch on
    backend-specific exceptions.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class SubtreeAccessError(StorageAccessError):
    """Raised when a directory cannot be listed (access denied)."""


class JobConfigError(FlagSyncError):
    """Raised when job settings cannot be parsed."""
