"""Local disk backend."""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ..config import config
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

PathLike = Union[str, Path]


def _validate_path(path: Optional[PathLike]) -> Path:
    if path is None:
        raise ArgumentError("path must not be None")
    if not isinstance(path, (str, Path)):
        raise ArgumentError(f"Invalid path type: {type(path).__name__}")
    if str(path) == "" or "\x00" in str(path):
        raise ArgumentError(f"Invalid path: {path!r}")
    return Path(path)


class LocalFileInfo(FileInfo):
    """A file on the local disk."""

    def __init__(self, path: PathLike, file_system: "LocalFileSystem"):
        self.path = _validate_path(path)
        self._file_system = file_system

    @property
    def file_system(self) -> "LocalFileSystem":
        return self._file_system

    @property
    def full_name(self) -> str:
        return str(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def last_write_time(self) -> datetime:
        return from_timestamp(self._stat().st_mtime)

    @property
    def length(self) -> int:
        return self._stat().st_size

    @property
    def directory(self) -> "LocalDirectoryInfo":
        return LocalDirectoryInfo(self.path.parent, self._file_system)

    def open(self) -> BinaryIO:
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise StorageAccessError(f"Cannot read {self.path}: {e}", str(self.path)) from e

    def _stat(self) -> os.stat_result:
        try:
            return self.path.stat()
        except OSError as e:
            raise StorageAccessError(f"Cannot stat {self.path}: {e}", str(self.path)) from e


class LocalDirectoryInfo(DirectoryInfo):
    """A directory on the local disk."""

    def __init__(self, path: PathLike, file_system: "LocalFileSystem"):
        self.path = _validate_path(path)
        self._file_system = file_system

    @property
    def file_system(self) -> "LocalFileSystem":
        return self._file_system

    @property
    def full_name(self) -> str:
        return str(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def exists(self) -> bool:
        return self.path.is_dir()

    @property
    def parent(self) -> Optional["LocalDirectoryInfo"]:
        if self.path.parent == self.path:
            return None
        return LocalDirectoryInfo(self.path.parent, self._file_system)

    def get_files(self) -> list[FileInfo]:
        return [
            LocalFileInfo(item, self._file_system)
            for item in self._list()
            if item.is_file()
        ]

    def get_directories(self) -> list[DirectoryInfo]:
        return [
            LocalDirectoryInfo(item, self._file_system)
            for item in self._list()
            if item.is_dir()
        ]

    def _list(self) -> list[Path]:
        try:
            return sorted(self.path.iterdir(), key=lambda item: item.name)
        except OSError as e:
            # PermissionError, FileNotFoundError, NotADirectoryError
            raise SubtreeAccessError(
                f"Cannot list directory {self.path}: {e}", str(self.path)
            ) from e


class LocalFileSystem(FileSystem):
    """File system backed by the local disk."""

    def __init__(
        self,
        timestamp_tolerance: Optional[float] = None,
        copy_buffer_size: Optional[int] = None,
    ):
        if timestamp_tolerance is None:
            timestamp_tolerance = config.timestamp_tolerance
        self.timestamp_tolerance = timestamp_tolerance
        self.copy_buffer_size = copy_buffer_size or config.copy_buffer_size

    def get_file_info(self, path: str) -> LocalFileInfo:
        return LocalFileInfo(path, self)

    def get_directory_info(self, path: str) -> LocalDirectoryInfo:
        return LocalDirectoryInfo(path, self)

    def combine_path(self, directory: str, name: str) -> str:
        return os.path.join(directory, name)

    def create_directory(self, path: str) -> LocalDirectoryInfo:
        directory = LocalDirectoryInfo(path, self)
        try:
            directory.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageAccessError(
                f"Cannot create directory {path}: {e}", path
            ) from e
        return directory

    def delete_file(self, file: FileInfo) -> None:
        try:
            os.remove(file.full_name)
        except OSError as e:
            raise StorageAccessError(
                f"Cannot delete file {file.full_name}: {e}", file.full_name
            ) from e

    def delete_directory(self, directory: DirectoryInfo) -> None:
        try:
            shutil.rmtree(directory.full_name)
        except OSError as e:
            raise StorageAccessError(
                f"Cannot delete directory {directory.full_name}: {e}",
                directory.full_name,
            ) from e

    def write_file(
        self,
        path: str,
        stream: BinaryIO,
        length: int,
        last_write_time: datetime,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        try:
            with open(path, "wb") as target:
                copy_stream(
                    stream,
                    target.write,
                    length,
                    self.copy_buffer_size,
                    progress_callback,
                )
            mtime = to_utc(last_write_time).timestamp()
            os.utime(path, (mtime, mtime))
        except OSError as e:
            raise StorageAccessError(f"Cannot write {path}: {e}", path) from e
