"""Backup and sync traversal of a single job.

A job walks its directory pair depth-first (files before subdirectories)
through the storage abstraction and reports every step on its
:class:`~flagsync.sync.events.EventBus`:

* **Backup** merges directory A into directory B and afterwards removes
  everything from B that does not exist in A.
* **Sync** merges A into B and then B into A. It never deletes.

Failures of single files or directories are logged, reported as error
events and never abort the job. Pausing and stopping are cooperative: the
traversal checks the control flags at every file and directory boundary.
"""

import logging
import threading
from enum import Enum
from typing import Optional

from ..exceptions import StorageAccessError
from ..filesystem.base import DirectoryInfo, FileInfo, FileSystem
from .comparator import FileComparator, SyncAction
from .events import EventBus, SyncEvent, SyncEventInfo
from .settings import JobSetting

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    """Lifecycle states of a job."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"
    STOPPED = "stopped"


class Job:
    """One backup or sync task operating on a directory pair.

    Examples:
        >>> from flagsync.filesystem import VirtualFileSystem
        >>> fs = VirtualFileSystem()
        >>> _ = fs.add_file("/a/report.txt", b"data", last_write_time=10)
        >>> setting = JobSetting("docs", "/a", "/b")
        >>> job = Job(setting, preview=False, source_file_system=fs,
        ...           target_file_system=fs)
        >>> job.start()
        True
        >>> fs.read_file("/b/report.txt")
        b'data'
    """

    def __init__(
        self,
        settings: JobSetting,
        preview: bool,
        source_file_system: FileSystem,
        target_file_system: FileSystem,
        comparator: Optional[FileComparator] = None,
    ):
        """Initialize a job.

        Args:
            settings: The job settings
            preview: If True, report all changes without performing them
            source_file_system: File system of directory A
            target_file_system: File system of directory B
            comparator: Staleness strategy (default: derived from the
                timestamp tolerance of both file systems)
        """
        self.settings = settings
        self.preview = preview
        self.source_file_system = source_file_system
        self.target_file_system = target_file_system
        self.comparator = comparator or FileComparator.for_file_systems(
            source_file_system, target_file_system
        )
        self.events = EventBus()

        self._written_bytes = 0
        self._proceeded_files = 0
        self._started = False
        self._finished = False

        # Set while the traversal may run, cleared while paused
        self._resume_event = threading.Event()
        self._resume_event.set()
        self._stop_event = threading.Event()
        self._control_lock = threading.RLock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.settings.name

    @property
    def written_bytes(self) -> int:
        """Bytes copied by this job."""
        return self._written_bytes

    @property
    def proceeded_files(self) -> int:
        return self._proceeded_files

    @property
    def is_paused(self) -> bool:
        return not self._resume_event.is_set() and not self._stop_event.is_set()

    @property
    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def state(self) -> JobState:
        if self._stop_event.is_set():
            return JobState.STOPPED
        if self._finished:
            return JobState.FINISHED
        if not self._started:
            return JobState.CREATED
        if self.is_paused:
            return JobState.PAUSED
        return JobState.RUNNING

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """Run the traversal on the calling thread.

        Returns:
            True if the job finished, False if it was stopped

        Raises:
            RuntimeError: If the job has already been started
        """
        if self._started:
            raise RuntimeError(f"Job {self.name!r} has already been started")
        self._started = True

        logger.info(
            f"Starting {self.settings.sync_mode.value} job {self.name}"
            + (" (preview)" if self.preview else "")
        )

        if self.settings.sync_mode.is_backup:
            self._run_backup()
        else:
            self._run_sync()

        with self._control_lock:
            if self._stop_event.is_set():
                logger.info(f"Stopped job: {self.name}")
                return False
            self._finished = True

        self._emit(SyncEvent.JOB_FINISHED)
        return True

    def pause(self) -> None:
        """Halt the traversal at the next file or directory boundary."""
        with self._control_lock:
            if not self._stop_event.is_set():
                self._resume_event.clear()
                logger.info(f"Paused job: {self.name}")

    def resume(self) -> None:
        """Continue a paused traversal."""
        self._resume_event.set()
        logger.info(f"Continued job: {self.name}")

    def stop(self) -> None:
        """Stop the traversal at the next boundary.

        Already applied changes are kept. After this method returns no
        further creating, modifying or deleting notifications are emitted.
        """
        with self._control_lock:
            self._stop_event.set()
            self._resume_event.set()
        logger.info(f"Stopping job: {self.name}")

    def close(self) -> None:
        """Release the file systems of the job."""
        self.source_file_system.close()
        if self.target_file_system is not self.source_file_system:
            self.target_file_system.close()

    def _should_stop(self) -> bool:
        """Block while paused; return True once the job is stopped."""
        self._resume_event.wait()
        return self._stop_event.is_set()

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _emit(self, event: SyncEvent, **kwargs) -> None:
        self.events.emit(SyncEventInfo(event=event, job_name=self.name, **kwargs))

    def _announce(self, event: SyncEvent, **kwargs) -> bool:
        """Emit an "about to mutate" notification unless the job is stopped."""
        with self._control_lock:
            if self._stop_event.is_set():
                return False
            self._emit(event, **kwargs)
            return True

    def _on_file_proceeded(self, file: FileInfo) -> None:
        self._proceeded_files += 1
        self._emit(
            SyncEvent.PROCEEDED_FILE,
            source_path=file.full_name,
            file_size=_safe_length(file),
        )

    # -------------------------------------------------------------------------
    # Job kinds
    # -------------------------------------------------------------------------

    def _run_backup(self) -> None:
        source = self.source_file_system.get_directory_info(self.settings.directory_a)
        target = self.target_file_system.get_directory_info(self.settings.directory_b)

        source_exists = self._root_exists(source)
        if source_exists is None:
            return
        if not source_exists:
            # Mirroring a missing source would wipe the whole target
            logger.error(f"Source directory does not exist: {source.full_name}")
            return

        target_exists = self._root_exists(target)
        if target_exists is None or not self._prepare_root(target, target_exists):
            return

        self._backup_directories(source, target, target_exists)

        if self._should_stop():
            return

        self._check_deletions(target, source)

    def _run_sync(self) -> None:
        directory_a = self.source_file_system.get_directory_info(
            self.settings.directory_a
        )
        directory_b = self.target_file_system.get_directory_info(
            self.settings.directory_b
        )

        a_exists = self._root_exists(directory_a)
        if a_exists is None:
            return
        b_exists = self._root_exists(directory_b)
        if b_exists is None:
            return

        if self._prepare_root(directory_b, b_exists) and a_exists:
            self._backup_directories(directory_a, directory_b, b_exists)

        if self._should_stop():
            return

        # A root created by the first pass only holds copies of the other side
        if self._prepare_root(directory_a, a_exists) and b_exists:
            self._backup_directories(directory_b, directory_a, a_exists)

    def _root_exists(self, directory: DirectoryInfo) -> Optional[bool]:
        """Check a root directory; None if its storage cannot be reached."""
        try:
            return directory.exists
        except StorageAccessError as e:
            logger.error(f"Cannot access directory {directory.full_name}: {e}")
            self._emit(
                SyncEvent.DIRECTORY_CREATION_ERROR,
                target_path=directory.full_name,
                error=e,
            )
            return None

    def _prepare_root(self, directory: DirectoryInfo, exists: bool) -> bool:
        """Make sure a root directory exists before merging into it."""
        if exists:
            return True
        return self._create_directory(None, directory)

    # -------------------------------------------------------------------------
    # Merge phase
    # -------------------------------------------------------------------------

    def _backup_directories(
        self, source: DirectoryInfo, target: DirectoryInfo, target_exists: bool = True
    ) -> None:
        """Copy new and modified files from ``source`` into ``target``.

        ``target`` is listed once per directory and its entries are looked up
        by name. A target that has just been created, or would be created in
        preview, counts as empty without listing it.
        """
        if self._should_stop():
            return

        try:
            files = source.get_files()
        except StorageAccessError as e:
            logger.error(f"Access denied at directory {source.full_name}: {e}")
            return

        target_fs = target.file_system
        target_files: dict[str, FileInfo] = {}
        target_directories: dict[str, DirectoryInfo] = {}
        if target_exists:
            try:
                target_files = {file.name: file for file in target.get_files()}
                target_directories = {
                    directory.name: directory for directory in target.get_directories()
                }
            except StorageAccessError as e:
                logger.error(f"Cannot list target directory {target.full_name}: {e}")
                for file in files:
                    self._emit(
                        SyncEvent.FILE_COPY_ERROR,
                        source_path=file.full_name,
                        target_path=target_fs.combine_path(target.full_name, file.name),
                        error=e,
                    )
                    self._on_file_proceeded(file)
                return

        for file in files:
            if self._should_stop():
                return
            self._merge_file(file, target, target_files.get(file.name))

        try:
            directories = source.get_directories()
        except StorageAccessError as e:
            logger.error(f"Access denied at directory {source.full_name}: {e}")
            return

        for directory in directories:
            if self._should_stop():
                return

            counterpart = target_directories.get(directory.name)
            if counterpart is not None:
                self._backup_directories(directory, counterpart)
                continue

            counterpart = target_fs.get_directory_info(
                target_fs.combine_path(target.full_name, directory.name)
            )
            if self._create_directory(directory, counterpart):
                self._backup_directories(directory, counterpart, target_exists=False)

    def _merge_file(
        self,
        source_file: FileInfo,
        target_directory: DirectoryInfo,
        target_file: Optional[FileInfo],
    ) -> None:
        target_fs = target_directory.file_system
        target_path = target_fs.combine_path(target_directory.full_name, source_file.name)

        try:
            decision = self.comparator.compare(source_file, target_file)
            size = source_file.length
        except StorageAccessError as e:
            logger.error(f"Cannot compare file {source_file.full_name}: {e}")
            self._emit(
                SyncEvent.FILE_COPY_ERROR,
                source_path=source_file.full_name,
                target_path=target_path,
                error=e,
            )
            self._on_file_proceeded(source_file)
            return

        logger.debug(
            f"{decision.action.value} {source_file.full_name}: {decision.reason}"
        )

        if decision.action == SyncAction.CREATE:
            self._copy_file(
                source_file,
                target_directory,
                target_path,
                size,
                SyncEvent.CREATING_FILE,
                SyncEvent.CREATED_FILE,
            )
        elif decision.action == SyncAction.MODIFY:
            self._copy_file(
                source_file,
                target_directory,
                target_path,
                size,
                SyncEvent.MODIFYING_FILE,
                SyncEvent.MODIFIED_FILE,
            )

        self._on_file_proceeded(source_file)

    def _copy_file(
        self,
        source_file: FileInfo,
        target_directory: DirectoryInfo,
        target_path: str,
        size: int,
        starting_event: SyncEvent,
        finished_event: SyncEvent,
    ) -> None:
        paths = {"source_path": source_file.full_name, "target_path": target_path}

        if not self._announce(starting_event, file_size=size, **paths):
            return

        if not self.preview:

            def on_progress(copied: int, total: int) -> None:
                self._emit(
                    SyncEvent.FILE_COPY_PROGRESS,
                    file_size=total,
                    bytes_copied=copied,
                    **paths,
                )

            try:
                target_directory.file_system.copy_file(
                    source_file, target_directory, progress_callback=on_progress
                )
            except StorageAccessError as e:
                logger.error(f"Error copying file {source_file.full_name}: {e}")
                self._emit(SyncEvent.FILE_COPY_ERROR, file_size=size, error=e, **paths)
                return

            self._written_bytes += size

        self._emit(finished_event, file_size=size, **paths)

    def _create_directory(
        self, source: Optional[DirectoryInfo], target: DirectoryInfo
    ) -> bool:
        paths = {
            "source_path": source.full_name if source is not None else None,
            "target_path": target.full_name,
        }

        if not self._announce(SyncEvent.CREATING_DIRECTORY, **paths):
            return False

        if not self.preview:
            try:
                target.create()
            except StorageAccessError as e:
                logger.error(f"Error creating directory {target.full_name}: {e}")
                self._emit(SyncEvent.DIRECTORY_CREATION_ERROR, error=e, **paths)
                return False

        self._emit(SyncEvent.CREATED_DIRECTORY, **paths)
        return True

    # -------------------------------------------------------------------------
    # Deletion phase (backup only)
    # -------------------------------------------------------------------------

    def _check_deletions(self, directory: DirectoryInfo, reference: DirectoryInfo) -> None:
        """Delete everything in ``directory`` that is missing in ``reference``.

        Both directories are listed up front. If either listing fails the
        whole subtree is skipped, so an unreadable source never looks empty.
        """
        if self._should_stop():
            return

        try:
            if not directory.exists:
                return
            files = directory.get_files()
            directories = directory.get_directories()
            reference_files = {file.name for file in reference.get_files()}
            reference_directories = {
                subdirectory.name: subdirectory
                for subdirectory in reference.get_directories()
            }
        except StorageAccessError as e:
            logger.error(
                f"Cannot compare {directory.full_name} with {reference.full_name}: {e}"
            )
            return

        for file in files:
            if self._should_stop():
                return
            if file.name not in reference_files:
                self._on_file_proceeded(file)
                self._delete_file(file)

        for subdirectory in directories:
            if self._should_stop():
                return
            counterpart = reference_directories.get(subdirectory.name)
            if counterpart is not None:
                self._check_deletions(subdirectory, counterpart)
            else:
                self._report_subtree(subdirectory)
                self._delete_directory(subdirectory)

    def _report_subtree(self, directory: DirectoryInfo) -> None:
        try:
            files = directory.walk_files()
        except StorageAccessError as e:
            logger.warning(f"Cannot list {directory.full_name} before deletion: {e}")
            return
        for file in files:
            self._on_file_proceeded(file)

    def _delete_file(self, file: FileInfo) -> None:
        size = _safe_length(file)
        if not self._announce(
            SyncEvent.DELETING_FILE, target_path=file.full_name, file_size=size
        ):
            return

        if not self.preview:
            try:
                file.file_system.delete_file(file)
            except StorageAccessError as e:
                logger.error(f"Error deleting file {file.full_name}: {e}")
                self._emit(
                    SyncEvent.FILE_DELETION_ERROR,
                    target_path=file.full_name,
                    file_size=size,
                    error=e,
                )
                return

        self._emit(SyncEvent.DELETED_FILE, target_path=file.full_name, file_size=size)

    def _delete_directory(self, directory: DirectoryInfo) -> None:
        if not self._announce(SyncEvent.DELETING_DIRECTORY, target_path=directory.full_name):
            return

        if not self.preview:
            try:
                directory.delete()
            except StorageAccessError as e:
                logger.error(f"Error deleting directory {directory.full_name}: {e}")
                self._emit(
                    SyncEvent.DIRECTORY_DELETION_ERROR,
                    target_path=directory.full_name,
                    error=e,
                )
                return

        self._emit(SyncEvent.DELETED_DIRECTORY, target_path=directory.full_name)


def _safe_length(file: FileInfo) -> Optional[int]:
    try:
        return file.length
    except StorageAccessError:
        return None
