"""FlagSync - back up and synchronize directory trees locally and over FTP."""

from .exceptions import (
    ArgumentError,
    FlagSyncError,
    JobConfigError,
    StorageAccessError,
    SubtreeAccessError,
)
from .sync import Job, JobSetting, JobWorker, SyncEvent, SyncMode

__all__ = [
    "Job",
    "JobSetting",
    "JobWorker",
    "SyncEvent",
    "SyncMode",
    "FlagSyncError",
    "ArgumentError",
    "StorageAccessError",
    "SubtreeAccessError",
    "JobConfigError",
]
