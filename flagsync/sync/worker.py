"""Sequential job queue running on a background thread."""

import logging
import threading
from collections import deque
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from ..exceptions import FlagSyncError
from ..filesystem.base import FileSystem
from ..filesystem.ftp import FtpFileSystem
from ..filesystem.local import LocalFileSystem
from .counter import FileCounter, FileCounterResult
from .events import EventBus, SyncEvent, SyncEventInfo
from .job import Job
from .settings import JobSetting

logger = logging.getLogger(__name__)

FileSystemFactory = Callable[[JobSetting], tuple[FileSystem, FileSystem]]


def create_file_systems(setting: JobSetting) -> tuple[FileSystem, FileSystem]:
    """Create the file systems for directory A and directory B of a job.

    Local modes use the local disk on both sides. Remote modes keep
    directory A local and reach directory B through the FTP endpoint.
    """
    source = LocalFileSystem()
    if setting.sync_mode.is_remote:
        return source, FtpFileSystem.from_endpoint(setting.ftp)
    return source, LocalFileSystem()


class JobWorker:
    """Runs jobs one after another and relays their notifications.

    All notifications of the queued jobs are re-emitted unchanged on
    :attr:`events`, framed by the run-level notifications ``FILES_COUNTED``,
    ``JOB_STARTED``, ``JOB_ERROR`` and finally ``FINISHED`` or ``STOPPED``.

    Examples:
        >>> worker = JobWorker()
        >>> unsubscribe = worker.events.subscribe(print_event)  # doctest: +SKIP
        >>> worker.start(settings, preview=True)  # doctest: +SKIP
        >>> worker.wait()  # doctest: +SKIP
        True
    """

    def __init__(
        self,
        file_system_factory: FileSystemFactory = create_file_systems,
        counter: Optional[FileCounter] = None,
    ):
        """Initialize the worker.

        Args:
            file_system_factory: Creates the (source, target) file systems
                of a job setting
            counter: Pre-scan counter (default: :class:`FileCounter`)
        """
        self.events = EventBus()
        self.total_written_bytes = 0
        self.proceeded_files = 0
        self.file_counter_result = FileCounterResult()

        self._file_system_factory = file_system_factory
        self._counter = counter or FileCounter()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="flagsync-worker"
        )
        self._future: Optional[Future] = None
        self._queue: deque[Job] = deque()
        self._queue_lock = threading.Lock()
        self._current_job: Optional[Job] = None
        self._pause_requested = False
        self._stopped = threading.Event()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._future is not None and not self._future.done()

    @property
    def is_paused(self) -> bool:
        return self.is_running and self._pause_requested

    @property
    def is_stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def current_job(self) -> Optional[Job]:
        return self._current_job

    @property
    def queued_jobs(self) -> list[Job]:
        """Jobs waiting behind the current one."""
        with self._queue_lock:
            return list(self._queue)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def start(self, settings: Iterable[JobSetting], preview: bool = False) -> None:
        """Queue a job for every included setting and start the run.

        Returns immediately; the jobs run on the background thread.

        Args:
            settings: Job settings in the order they should run
            preview: If True, report all changes without performing them

        Raises:
            RuntimeError: If a run is already in progress
        """
        with self._queue_lock:
            if self.is_running:
                raise RuntimeError("A run is already in progress")

            self.total_written_bytes = 0
            self.proceeded_files = 0
            self.file_counter_result = FileCounterResult()
            self._pause_requested = False
            self._stopped.clear()

            jobs: list[Job] = []
            try:
                for setting in settings:
                    if setting.is_included:
                        jobs.append(self._create_job(setting, preview))
            except Exception:
                for job in jobs:
                    job.close()
                raise

            self._queue.clear()
            self._queue.extend(jobs)
            logger.debug(
                f"Queued {len(jobs)} job(s)" + (" (preview)" if preview else "")
            )
            self._future = self._executor.submit(self._run)

    def pause(self) -> None:
        """Pause the current job; queued jobs start paused."""
        with self._queue_lock:
            self._pause_requested = True
            job = self._current_job
        if job is not None:
            job.pause()

    def resume(self) -> None:
        with self._queue_lock:
            self._pause_requested = False
            job = self._current_job
        if job is not None:
            job.resume()

    def stop(self) -> None:
        """Stop the current job and drop all queued jobs."""
        with self._queue_lock:
            self._stopped.set()
            self._pause_requested = False
            job = self._current_job
            dropped = list(self._queue)
            self._queue.clear()

        if job is not None:
            job.stop()
        for queued in dropped:
            queued.close()
        if dropped:
            logger.info(f"Removed {len(dropped)} queued job(s)")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run has ended.

        Returns:
            False if the timeout expired first
        """
        future = self._future
        if future is None:
            return True
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            return False
        return True

    def shutdown(self) -> None:
        """Stop any run and release the background thread."""
        if self.is_running:
            self.stop()
        self._executor.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Background thread
    # -------------------------------------------------------------------------

    def _create_job(self, setting: JobSetting, preview: bool) -> Job:
        source_file_system, target_file_system = self._file_system_factory(setting)
        return Job(setting, preview, source_file_system, target_file_system)

    def _emit(self, event: SyncEvent, **kwargs) -> None:
        self.events.emit(SyncEventInfo(event=event, **kwargs))

    def _run(self) -> None:
        self._count_files()

        if not self._stopped.is_set():
            self._emit(
                SyncEvent.FILES_COUNTED, file_counter_result=self.file_counter_result
            )

        while True:
            with self._queue_lock:
                if self._stopped.is_set() or not self._queue:
                    break
                job = self._queue.popleft()
                self._current_job = job
                if self._pause_requested:
                    job.pause()

            self._run_job(job)

        if self._stopped.is_set():
            logger.info("Stopped work")
            self._emit(SyncEvent.STOPPED)
        else:
            logger.info("Finished work")
            self._emit(SyncEvent.FINISHED)

    def _count_files(self) -> None:
        logger.info("Start counting files")
        result = FileCounterResult()
        for job in self.queued_jobs:
            if self._stopped.is_set():
                break
            try:
                result += self._counter.count_job_files(
                    job.settings, job.source_file_system, job.target_file_system
                )
            except FlagSyncError as e:
                logger.error(f"Cannot count files of job {job.name}: {e}")
            except Exception:
                logger.exception(f"Counting files of job {job.name} failed")
        self.file_counter_result = result

    def _run_job(self, job: Job) -> None:
        def relay(info: SyncEventInfo) -> None:
            if info.event == SyncEvent.JOB_FINISHED:
                self._add_totals(job)
            self.events.emit(info)

        unsubscribe = job.events.subscribe(relay)
        self._emit(SyncEvent.JOB_STARTED, job_name=job.name)
        logger.info(f"Started job: {job.name}")

        try:
            if job.start():
                logger.info(f"Finished job: {job.name}")
            else:
                self._add_totals(job)
                with self._queue_lock:
                    self._stopped.set()
                    self._queue.clear()
        except Exception as e:
            logger.exception(f"Job {job.name} failed")
            self._add_totals(job)
            self._emit(SyncEvent.JOB_ERROR, job_name=job.name, error=e)
        finally:
            unsubscribe()
            job.close()
            with self._queue_lock:
                self._current_job = None

    def _add_totals(self, job: Job) -> None:
        self.total_written_bytes += job.written_bytes
        self.proceeded_files += job.proceeded_files
