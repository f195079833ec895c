"""Pre-scan counting of files, directories and bytes.

The worker counts every queued job before the first mutation so that
progress can be reported relative to the whole run.
"""

import logging
from dataclasses import dataclass

from ..exceptions import StorageAccessError
from ..filesystem.base import DirectoryInfo, FileSystem
from .settings import JobSetting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileCounterResult:
    """Aggregated counts. Results combine with ``+``."""

    files: int = 0
    directories: int = 0
    bytes: int = 0

    def __add__(self, other: "FileCounterResult") -> "FileCounterResult":
        if not isinstance(other, FileCounterResult):
            return NotImplemented
        return FileCounterResult(
            files=self.files + other.files,
            directories=self.directories + other.directories,
            bytes=self.bytes + other.bytes,
        )


class FileCounter:
    """Counts the files a job will process."""

    def count_job_files(
        self,
        setting: JobSetting,
        source_file_system: FileSystem,
        target_file_system: FileSystem,
    ) -> FileCounterResult:
        """Count the relevant domain of a job.

        Backup jobs only process the source tree. Sync jobs process both
        trees, so both are counted.

        Args:
            setting: Job settings
            source_file_system: File system of directory A
            target_file_system: File system of directory B

        Returns:
            Counts of the job
        """
        result = self.count_directory(
            source_file_system.get_directory_info(setting.directory_a)
        )
        if setting.sync_mode.is_sync:
            result += self.count_directory(
                target_file_system.get_directory_info(setting.directory_b)
            )
        logger.debug(
            f"Counted job {setting.name}: {result.files} file(s), "
            f"{result.directories} directory(ies), {result.bytes} bytes"
        )
        return result

    def count_directory(self, directory: DirectoryInfo) -> FileCounterResult:
        """Recursively count a directory tree.

        The root directory itself is not counted. Subtrees that cannot be
        listed are logged and skipped; a missing root counts as empty.
        """
        if not directory.exists:
            return FileCounterResult()

        try:
            files = directory.get_files()
            directories = directory.get_directories()
        except StorageAccessError as e:
            logger.error(f"Access denied at directory {directory.full_name}: {e}")
            return FileCounterResult()

        result = FileCounterResult(
            files=len(files),
            directories=len(directories),
            bytes=sum(self._length(file) for file in files),
        )
        for subdirectory in directories:
            result += self.count_directory(subdirectory)
        return result

    def _length(self, file) -> int:
        try:
            return file.length
        except StorageAccessError as e:
            logger.warning(f"Cannot read size of {file.full_name}: {e}")
            return 0
