"""Notifications emitted by jobs and the job worker.

Every notification is a :class:`SyncEventInfo` tagged with a
:class:`SyncEvent`. Consumers register callbacks on an :class:`EventBus`
and receive the notifications in emission order, on the thread that
emits them (the worker thread during a run).
"""

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .counter import FileCounterResult

logger = logging.getLogger(__name__)


class SyncEvent(str, Enum):
    """Kinds of notifications."""

    # Per-item events
    PROCEEDED_FILE = "proceeded_file"
    CREATING_FILE = "creating_file"
    CREATED_FILE = "created_file"
    MODIFYING_FILE = "modifying_file"
    MODIFIED_FILE = "modified_file"
    DELETING_FILE = "deleting_file"
    DELETED_FILE = "deleted_file"
    CREATING_DIRECTORY = "creating_directory"
    CREATED_DIRECTORY = "created_directory"
    DELETING_DIRECTORY = "deleting_directory"
    DELETED_DIRECTORY = "deleted_directory"
    FILE_COPY_PROGRESS = "file_copy_progress"

    # Per-item errors
    FILE_COPY_ERROR = "file_copy_error"
    FILE_DELETION_ERROR = "file_deletion_error"
    DIRECTORY_CREATION_ERROR = "directory_creation_error"
    DIRECTORY_DELETION_ERROR = "directory_deletion_error"

    # Run-level events
    FILES_COUNTED = "files_counted"
    JOB_STARTED = "job_started"
    JOB_FINISHED = "job_finished"
    JOB_ERROR = "job_error"
    FINISHED = "finished"
    STOPPED = "stopped"

    @property
    def is_error(self) -> bool:
        return self in _ERROR_EVENTS

    @property
    def is_mutation_start(self) -> bool:
        """Whether the event announces a mutation of an entity."""
        return self in _MUTATION_START_EVENTS


_ERROR_EVENTS = frozenset(
    {
        SyncEvent.FILE_COPY_ERROR,
        SyncEvent.FILE_DELETION_ERROR,
        SyncEvent.DIRECTORY_CREATION_ERROR,
        SyncEvent.DIRECTORY_DELETION_ERROR,
        SyncEvent.JOB_ERROR,
    }
)

_MUTATION_START_EVENTS = frozenset(
    {
        SyncEvent.CREATING_FILE,
        SyncEvent.MODIFYING_FILE,
        SyncEvent.DELETING_FILE,
        SyncEvent.CREATING_DIRECTORY,
        SyncEvent.DELETING_DIRECTORY,
    }
)


@dataclass(frozen=True)
class SyncEventInfo:
    """A single notification."""

    event: SyncEvent
    """Kind of notification"""

    job_name: Optional[str] = None
    """Name of the job that emitted the notification"""

    source_path: Optional[str] = None
    """Path of the entity in the source tree (or the entity itself)"""

    target_path: Optional[str] = None
    """Path of the entity in the target tree"""

    file_size: Optional[int] = None
    """Size of the file in bytes, for file events"""

    bytes_copied: int = 0
    """Bytes copied so far, for copy progress events"""

    error: Optional[Exception] = None
    """The failure, for error events"""

    file_counter_result: Optional["FileCounterResult"] = None
    """Pre-scan totals, for FILES_COUNTED"""

    @property
    def path(self) -> Optional[str]:
        """The most specific path of the notification."""
        return self.target_path or self.source_path


EventCallback = Callable[[SyncEventInfo], None]


class EventBus:
    """Delivers notifications to registered callbacks.

    Examples:
        >>> bus = EventBus()
        >>> received = []
        >>> unsubscribe = bus.subscribe(received.append)
        >>> bus.emit(SyncEventInfo(SyncEvent.FINISHED))
        >>> unsubscribe()
        >>> bus.emit(SyncEventInfo(SyncEvent.FINISHED))
        >>> len(received)
        1
    """

    def __init__(self) -> None:
        self._subscribers: list[
            tuple[EventCallback, Optional[frozenset[SyncEvent]]]
        ] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: EventCallback,
        events: Optional[Iterable[SyncEvent]] = None,
    ) -> Callable[[], None]:
        """Register a callback.

        Args:
            callback: Function called with every matching notification
            events: Only deliver these kinds (default: all)

        Returns:
            A function that removes the subscription again
        """
        entry = (callback, frozenset(events) if events is not None else None)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def emit(self, info: SyncEventInfo) -> None:
        """Deliver a notification to all matching subscribers.

        A failing subscriber is logged and does not prevent delivery to the
        remaining subscribers.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for callback, events in subscribers:
            if events is not None and info.event not in events:
                continue
            try:
                callback(info)
            except Exception:
                logger.exception(f"Subscriber failed while handling {info.event.value}")
