"""Job engine for FlagSync - backup, sync and the job queue."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .config import load_job_settings_from_json, parse_job_settings
from .counter import FileCounter, FileCounterResult
from .events import EventBus, SyncEvent, SyncEventInfo
from .job import Job, JobState
from .modes import SyncMode
from .settings import FtpEndpoint, JobSetting
from .worker import JobWorker, create_file_systems

__all__ = [
    "Job",
    "JobState",
    "JobWorker",
    "JobSetting",
    "FtpEndpoint",
    "SyncMode",
    "SyncEvent",
    "SyncEventInfo",
    "EventBus",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "FileCounter",
    "FileCounterResult",
    "create_file_systems",
    "load_job_settings_from_json",
    "parse_job_settings",
]
