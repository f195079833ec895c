"""In-memory backend used for previews and deterministic tests.

Paths are POSIX-style and always absolute (``/docs/a.txt``). Entries are
kept in memory only; nothing touches the disk.

Examples:
    >>> fs = VirtualFileSystem()
    >>> _ = fs.add_file("/source/a.txt", b"hello", last_write_time=10)
    >>> [f.name for f in fs.get_directory_info("/source").get_files()]
    ['a.txt']
"""

import io
import logging
import posixpath
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Optional, Union

from ..exceptions import ArgumentError, StorageAccessError, SubtreeAccessError
from ..utils import from_timestamp, to_utc
from .base import (
    DirectoryInfo,
    FileInfo,
    FileSystem,
    ProgressCallback,
    copy_stream,
)

logger = logging.getLogger(__name__)

_MISSING_TIME = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _normalize(path: Optional[str]) -> str:
    if path is None:
        raise ArgumentError("path must not be None")
    if not isinstance(path, str):
        raise ArgumentError(f"Invalid path type: {type(path).__name__}")
    if path.strip() == "" or "\x00" in path:
        raise ArgumentError(f"Invalid path: {path!r}")
    return posixpath.normpath("/" + path.replace("\\", "/").strip("/"))


@dataclass
class _VirtualFile:
    content: bytes
    last_write_time: datetime


class VirtualFileInfo(FileInfo):
    """A file of a :class:`VirtualFileSystem`.

    Length and timestamp are a snapshot taken when the entry was created.
    """

    def __init__(
        self,
        path: str,
        length: int,
        last_write_time: datetime,
        directory: "VirtualDirectoryInfo",
    ):
        if last_write_time is None:
            raise ArgumentError("last_write_time must not be None")
        if not isinstance(last_write_time, datetime):
            raise ArgumentError(
                f"Invalid last_write_time: {last_write_time!r}"
            )
        if directory is None:
            raise ArgumentError("directory must not be None")
        if length is None or length < 0:
            raise ArgumentError(f"Invalid length: {length!r}")

        self._full_name = _normalize(path)
        self._length = length
        self._last_write_time = to_utc(last_write_time)
        self._directory = directory

    @property
    def file_system(self) -> "VirtualFileSystem":
        return self._directory.file_system

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def name(self) -> str:
        return posixpath.basename(self._full_name)

    @property
    def exists(self) -> bool:
        return self.file_system._has_file(self._full_name)

    @property
    def last_write_time(self) -> datetime:
        return self._last_write_time

    @property
    def length(self) -> int:
        return self._length

    @property
    def directory(self) -> "VirtualDirectoryInfo":
        return self._directory

    def open(self) -> BinaryIO:
        return io.BytesIO(self.file_system.read_file(self._full_name))


class VirtualDirectoryInfo(DirectoryInfo):
    """A directory of a :class:`VirtualFileSystem`."""

    def __init__(self, path: str, file_system: "VirtualFileSystem"):
        if file_system is None:
            raise ArgumentError("file_system must not be None")
        self._full_name = _normalize(path)
        self._file_system = file_system

    @property
    def file_system(self) -> "VirtualFileSystem":
        return self._file_system

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def name(self) -> str:
        return posixpath.basename(self._full_name)

    @property
    def exists(self) -> bool:
        return self._file_system._has_directory(self._full_name)

    @property
    def parent(self) -> Optional["VirtualDirectoryInfo"]:
        if self._full_name == "/":
            return None
        return VirtualDirectoryInfo(
            posixpath.dirname(self._full_name), self._file_system
        )

    def get_files(self) -> list[FileInfo]:
        return self._file_system._list_files(self)

    def get_directories(self) -> list[DirectoryInfo]:
        return self._file_system._list_directories(self)


class VirtualFileSystem(FileSystem):
    """A file system that lives entirely in memory."""

    def __init__(self, timestamp_tolerance: float = 0.0):
        self.timestamp_tolerance = timestamp_tolerance
        self._files: dict[str, _VirtualFile] = {}
        self._directories: set[str] = {"/"}
        self._denied: set[str] = set()
        self._read_only: set[str] = set()
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Setup helpers
    # -------------------------------------------------------------------------

    def add_directory(self, path: str) -> VirtualDirectoryInfo:
        """Create a directory and its missing parents."""
        path = _normalize(path)
        with self._lock:
            current = path
            while current not in self._directories:
                self._directories.add(current)
                current = posixpath.dirname(current)
        return VirtualDirectoryInfo(path, self)

    def add_file(
        self,
        path: str,
        content: Union[bytes, str] = b"",
        last_write_time: Union[datetime, float, None] = None,
    ) -> VirtualFileInfo:
        """Create or replace a file, creating missing parent directories.

        Args:
            path: Absolute path of the file
            content: File content (``str`` is encoded as UTF-8)
            last_write_time: Modification time as datetime or Unix
                timestamp; defaults to now
        """
        path = _normalize(path)
        if isinstance(content, str):
            content = content.encode("utf-8")
        if last_write_time is None:
            last_write_time = datetime.now(timezone.utc)
        elif isinstance(last_write_time, (int, float)):
            last_write_time = from_timestamp(last_write_time)

        with self._lock:
            self.add_directory(posixpath.dirname(path))
            self._files[path] = _VirtualFile(content, to_utc(last_write_time))
        return self.get_file_info(path)

    def deny_access(self, path: str) -> None:
        """Make every access to ``path`` fail, like a permission error."""
        with self._lock:
            self._denied.add(_normalize(path))

    def allow_access(self, path: str) -> None:
        with self._lock:
            self._denied.discard(_normalize(path))

    def mark_read_only(self, path: str) -> None:
        """Reject writes and deletions at ``path`` and below; reading still works."""
        with self._lock:
            self._read_only.add(_normalize(path))

    def read_file(self, path: str) -> bytes:
        """Return the content of a file.

        Raises:
            StorageAccessError: If the file is missing or access is denied
        """
        path = _normalize(path)
        with self._lock:
            self._check_access(path)
            data = self._files.get(path)
            if data is None:
                raise StorageAccessError(f"File not found: {path}", path)
            return data.content

    # -------------------------------------------------------------------------
    # FileSystem contract
    # -------------------------------------------------------------------------

    def get_file_info(self, path: str) -> VirtualFileInfo:
        path = _normalize(path)
        directory = VirtualDirectoryInfo(posixpath.dirname(path), self)
        with self._lock:
            data = self._files.get(path)
        if data is None:
            return VirtualFileInfo(path, 0, _MISSING_TIME, directory)
        return VirtualFileInfo(path, len(data.content), data.last_write_time, directory)

    def get_directory_info(self, path: str) -> VirtualDirectoryInfo:
        return VirtualDirectoryInfo(path, self)

    def combine_path(self, directory: str, name: str) -> str:
        return posixpath.join(_normalize(directory), name)

    def create_directory(self, path: str) -> VirtualDirectoryInfo:
        path = _normalize(path)
        with self._lock:
            self._check_access(posixpath.dirname(path))
            self._check_access(path)
            self._check_writable(path)
            return self.add_directory(path)

    def delete_file(self, file: FileInfo) -> None:
        path = _normalize(file.full_name)
        with self._lock:
            self._check_access(path)
            self._check_writable(path)
            if path not in self._files:
                raise StorageAccessError(f"File not found: {path}", path)
            del self._files[path]

    def delete_directory(self, directory: DirectoryInfo) -> None:
        path = _normalize(directory.full_name)
        prefix = path.rstrip("/") + "/"
        with self._lock:
            if path not in self._directories:
                raise StorageAccessError(f"Directory not found: {path}", path)
            self._check_writable(path)
            for denied in self._denied:
                if denied == path or denied.startswith(prefix):
                    raise StorageAccessError(f"Access denied: {denied}", denied)
            for read_only in self._read_only:
                if read_only.startswith(prefix):
                    raise StorageAccessError(f"Read-only: {read_only}", read_only)
            self._files = {
                name: data
                for name, data in self._files.items()
                if not name.startswith(prefix)
            }
            self._directories = {
                name
                for name in self._directories
                if name != path and not name.startswith(prefix)
            }

    def write_file(
        self,
        path: str,
        stream: BinaryIO,
        length: int,
        last_write_time: datetime,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        path = _normalize(path)
        parent = posixpath.dirname(path)
        with self._lock:
            self._check_access(parent)
            self._check_access(path)
            self._check_writable(path)
            if parent not in self._directories:
                raise StorageAccessError(f"Directory not found: {parent}", path)

        buffer = io.BytesIO()
        copy_stream(
            stream, buffer.write, length, self.copy_buffer_size, progress_callback
        )

        with self._lock:
            self._files[path] = _VirtualFile(buffer.getvalue(), to_utc(last_write_time))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_access(self, path: str) -> None:
        if path in self._denied:
            raise StorageAccessError(f"Access denied: {path}", path)

    def _check_writable(self, path: str) -> None:
        for read_only in self._read_only:
            if path == read_only or path.startswith(read_only.rstrip("/") + "/"):
                raise StorageAccessError(f"Read-only: {path}", path)

    def _has_file(self, path: str) -> bool:
        with self._lock:
            return path in self._files

    def _has_directory(self, path: str) -> bool:
        with self._lock:
            return path in self._directories

    def _check_listing(self, directory: VirtualDirectoryInfo) -> None:
        path = directory.full_name
        if path in self._denied:
            raise SubtreeAccessError(f"Access denied: {path}", path)
        if path not in self._directories:
            raise SubtreeAccessError(f"Directory not found: {path}", path)

    def _list_files(self, directory: VirtualDirectoryInfo) -> list[FileInfo]:
        with self._lock:
            self._check_listing(directory)
            entries = [
                (name, data)
                for name, data in self._files.items()
                if posixpath.dirname(name) == directory.full_name
            ]
        return [
            VirtualFileInfo(name, len(data.content), data.last_write_time, directory)
            for name, data in sorted(entries, key=lambda item: item[0])
        ]

    def _list_directories(self, directory: VirtualDirectoryInfo) -> list[DirectoryInfo]:
        with self._lock:
            self._check_listing(directory)
            names = [
                name
                for name in self._directories
                if name != "/" and posixpath.dirname(name) == directory.full_name
            ]
        return [VirtualDirectoryInfo(name, self) for name in sorted(names)]
