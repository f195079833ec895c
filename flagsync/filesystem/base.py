"""Capability contract shared by all storage backends.

The job engine only talks to the classes in this module. A backend
participates in synchronization by implementing :class:`FileSystem`
together with its :class:`FileInfo` and :class:`DirectoryInfo` entries.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO, Callable, Optional

from ..exceptions import StorageAccessError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
"""Called with ``(bytes_copied, total_bytes)`` while a file is copied."""


class FileSystemInfo(ABC):
    """A file or directory entry of a storage backend."""

    @property
    @abstractmethod
    def file_system(self) -> "FileSystem":
        """The file system this entry belongs to."""

    @property
    @abstractmethod
    def full_name(self) -> str:
        """Full path of the entry."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Last segment of the path."""

    @property
    @abstractmethod
    def exists(self) -> bool:
        """Whether the entry exists in storage."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.full_name!r})"


class FileInfo(FileSystemInfo):
    """A file entry."""

    @property
    @abstractmethod
    def last_write_time(self) -> datetime:
        """Last modification time (timezone-aware)."""

    @property
    @abstractmethod
    def length(self) -> int:
        """File size in bytes."""

    @property
    @abstractmethod
    def directory(self) -> "DirectoryInfo":
        """Directory containing this file."""

    @abstractmethod
    def open(self) -> BinaryIO:
        """Open the file for binary reading.

        Raises:
            StorageAccessError: If the file cannot be read
        """


class DirectoryInfo(FileSystemInfo):
    """A directory entry."""

    @property
    @abstractmethod
    def parent(self) -> Optional["DirectoryInfo"]:
        """Parent directory, or None for a root directory."""

    @abstractmethod
    def get_files(self) -> list[FileInfo]:
        """List the files directly inside this directory, sorted by name.

        Raises:
            SubtreeAccessError: If the directory cannot be listed
        """

    @abstractmethod
    def get_directories(self) -> list["DirectoryInfo"]:
        """List the subdirectories of this directory, sorted by name.

        Raises:
            SubtreeAccessError: If the directory cannot be listed
        """

    def create(self) -> None:
        """Create this directory (including missing parents)."""
        self.file_system.create_directory(self.full_name)

    def delete(self) -> None:
        """Delete this directory and everything below it."""
        self.file_system.delete_directory(self)

    def walk_files(self) -> list[FileInfo]:
        """Return all files of this directory tree, depth-first."""
        files = list(self.get_files())
        for directory in self.get_directories():
            files.extend(directory.walk_files())
        return files


class FileSystem(ABC):
    """A storage backend.

    Subclasses translate their native errors into
    :class:`~flagsync.exceptions.StorageAccessError` and
    :class:`~flagsync.exceptions.SubtreeAccessError`.
    """

    timestamp_tolerance: float = 0.0
    """Seconds two timestamps may differ and still count as equal."""

    copy_buffer_size: int = 1024 * 1024

    @abstractmethod
    def get_file_info(self, path: str) -> FileInfo:
        """Return the file entry for ``path`` (which may not exist)."""

    @abstractmethod
    def get_directory_info(self, path: str) -> DirectoryInfo:
        """Return the directory entry for ``path`` (which may not exist)."""

    @abstractmethod
    def combine_path(self, directory: str, name: str) -> str:
        """Join a directory path and an entry name."""

    @abstractmethod
    def create_directory(self, path: str) -> DirectoryInfo:
        """Create a directory including missing parents."""

    @abstractmethod
    def delete_file(self, file: FileInfo) -> None:
        """Delete a file."""

    @abstractmethod
    def delete_directory(self, directory: DirectoryInfo) -> None:
        """Delete a directory recursively."""

    @abstractmethod
    def write_file(
        self,
        path: str,
        stream: BinaryIO,
        length: int,
        last_write_time: datetime,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Write ``stream`` to ``path`` and set its modification time."""

    def file_exists(self, path: str) -> bool:
        return self.get_file_info(path).exists

    def directory_exists(self, path: str) -> bool:
        return self.get_directory_info(path).exists

    def copy_file(
        self,
        source_file: FileInfo,
        target_directory: DirectoryInfo,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FileInfo:
        """Copy a file of any backend into a directory of this file system.

        An existing target file is overwritten. The copy gets the
        modification time of the source file.

        Args:
            source_file: File to copy (may belong to another backend)
            target_directory: Directory of this file system
            progress_callback: Optional callback
                function(bytes_copied, total_bytes)

        Returns:
            Entry of the copied file

        Raises:
            StorageAccessError: If reading the source or writing the
                target fails
        """
        target_path = self.combine_path(target_directory.full_name, source_file.name)
        logger.debug(f"Copying {source_file.full_name} to {target_path}")

        stream = source_file.open()
        try:
            self.write_file(
                target_path,
                stream,
                source_file.length,
                source_file.last_write_time,
                progress_callback,
            )
        except OSError as e:
            raise StorageAccessError(
                f"Failed to copy {source_file.full_name}: {e}", target_path
            ) from e
        finally:
            stream.close()

        return self.get_file_info(target_path)

    def close(self) -> None:
        """Release resources held by the file system."""

    def __enter__(self) -> "FileSystem":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def copy_stream(
    source: BinaryIO,
    write: Callable[[bytes], object],
    total: int,
    buffer_size: int,
    progress_callback: Optional[ProgressCallback] = None,
) -> int:
    """Copy ``source`` chunk by chunk into ``write``.

    Returns:
        Number of bytes copied
    """
    copied = 0
    while True:
        chunk = source.read(buffer_size)
        if not chunk:
            break
        write(chunk)
        copied += len(chunk)
        if progress_callback is not None:
            progress_callback(copied, total)
    return copied
