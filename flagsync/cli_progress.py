"""CLI progress display for job runs.

This module provides a Rich-based progress display and a summary collector,
both fed by the notifications of a :class:`~flagsync.sync.worker.JobWorker`.
"""

import threading
from collections import Counter
from typing import Any, Callable, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.events import EventBus, SyncEvent, SyncEventInfo
from .utils import format_size, remote_name


class RunProgressDisplay:
    """Rich-based progress display for a run.

    The bar advances with every proceeded file, measured against the file
    total of the pre-scan. The current job and the file being copied are
    shown next to it.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def attach(self, events: EventBus) -> Callable[[], None]:
        """Subscribe the display to a worker's notifications.

        Returns:
            A function that detaches the display again
        """
        return events.subscribe(self._handle_event)

    def _handle_event(self, info: SyncEventInfo) -> None:
        """Handle a notification of the worker.

        Args:
            info: The notification
        """
        if self._progress is None or self._task is None:
            return

        if info.event == SyncEvent.FILES_COUNTED:
            result = info.file_counter_result
            self._progress.update(
                self._task,
                description="Synchronizing",
                total=result.files if result is not None else None,
                completed=0,
            )

        elif info.event == SyncEvent.JOB_STARTED:
            self._progress.update(
                self._task, description=f"Job: {info.job_name}", file_info=""
            )

        elif info.event == SyncEvent.PROCEEDED_FILE:
            self._progress.advance(self._task)

        elif info.event == SyncEvent.FILE_COPY_PROGRESS:
            name = remote_name((info.source_path or "").replace("\\", "/"))
            copied = format_size(info.bytes_copied)
            total = format_size(info.file_size or 0)
            self._progress.update(self._task, file_info=f"{name} {copied}/{total}")

        elif info.event in (SyncEvent.FINISHED, SyncEvent.STOPPED):
            description = "Finished" if info.event == SyncEvent.FINISHED else "Stopped"
            self._progress.update(self._task, description=description, file_info="")

    def __enter__(self) -> "RunProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[file_info]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(
            "Counting files...", total=None, file_info=""
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


class RunSummary:
    """Collects the outcome of a run from worker notifications."""

    COUNTED_EVENTS = (
        SyncEvent.CREATED_FILE,
        SyncEvent.MODIFIED_FILE,
        SyncEvent.DELETED_FILE,
        SyncEvent.CREATED_DIRECTORY,
        SyncEvent.DELETED_DIRECTORY,
        SyncEvent.PROCEEDED_FILE,
        SyncEvent.JOB_FINISHED,
    )

    def __init__(self) -> None:
        self.counts: Counter = Counter()
        self.errors: list[SyncEventInfo] = []
        self.stopped = False
        self._lock = threading.Lock()

    def attach(self, events: EventBus) -> Callable[[], None]:
        return events.subscribe(self.handle)

    def handle(self, info: SyncEventInfo) -> None:
        with self._lock:
            if info.event in self.COUNTED_EVENTS:
                self.counts[info.event] += 1
            elif info.event.is_error:
                self.errors.append(info)
            elif info.event == SyncEvent.STOPPED:
                self.stopped = True

    def to_dict(self, written_bytes: int = 0) -> dict[str, Any]:
        """Return the summary as JSON-serializable dictionary."""
        with self._lock:
            return {
                "created_files": self.counts[SyncEvent.CREATED_FILE],
                "modified_files": self.counts[SyncEvent.MODIFIED_FILE],
                "deleted_files": self.counts[SyncEvent.DELETED_FILE],
                "created_directories": self.counts[SyncEvent.CREATED_DIRECTORY],
                "deleted_directories": self.counts[SyncEvent.DELETED_DIRECTORY],
                "proceeded_files": self.counts[SyncEvent.PROCEEDED_FILE],
                "finished_jobs": self.counts[SyncEvent.JOB_FINISHED],
                "written_bytes": written_bytes,
                "errors": [
                    {
                        "event": error.event.value,
                        "job": error.job_name,
                        "path": error.path,
                        "message": str(error.error) if error.error else None,
                    }
                    for error in self.errors
                ],
                "stopped": self.stopped,
            }

    def items(self, written_bytes: int = 0) -> list[tuple[str, str]]:
        """Rows for :meth:`~flagsync.output.OutputFormatter.print_summary`."""
        data = self.to_dict(written_bytes)
        return [
            ("Created", f"{data['created_files']} file(s)"),
            ("Modified", f"{data['modified_files']} file(s)"),
            ("Deleted", f"{data['deleted_files']} file(s)"),
            (
                "Directories",
                f"{data['created_directories']} created, "
                f"{data['deleted_directories']} deleted",
            ),
            ("Written", format_size(written_bytes)),
            ("Errors", str(len(data["errors"]))),
        ]
