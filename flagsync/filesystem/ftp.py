"""FTP backend built on :mod:`ftplib`.

Listings use ``MLSD`` so that size and modification time of every entry
arrive in one round trip. Modification times reported by FTP servers are
UTC with second precision, hence the coarse timestamp tolerance.
"""

import ftplib
import logging
import posixpath
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO, Callable, Optional

from ..config import config
from ..exceptions import ArgumentError, StorageAccessError, SubtreeAccessError
from ..utils import (
    COARSE_TIMESTAMP_TOLERANCE,
    DEFAULT_FTP_PORT,
    format_ftp_timestamp,
    parse_ftp_timestamp,
    remote_join,
    remote_name,
)
from .base import DirectoryInfo, FileInfo, FileSystem, ProgressCallback

if TYPE_CHECKING:
    from ..sync.settings import FtpEndpoint

logger = logging.getLogger(__name__)

# Files larger than this are spooled to disk while being downloaded
SPOOL_MAX_SIZE = 16 * 1024 * 1024


def _validate_path(path: Optional[str]) -> str:
    if path is None:
        raise ArgumentError("path must not be None")
    if not isinstance(path, str) or path.strip() == "" or "\x00" in path:
        raise ArgumentError(f"Invalid path: {path!r}")
    if "\r" in path or "\n" in path:
        # Would inject FTP commands
        raise ArgumentError(f"Invalid path: {path!r}")
    return posixpath.normpath("/" + path.strip("/"))


class FtpFileInfo(FileInfo):
    """A file on an FTP server."""

    def __init__(
        self,
        path: str,
        file_system: "FtpFileSystem",
        facts: Optional[dict[str, str]] = None,
    ):
        self._full_name = _validate_path(path)
        self._file_system = file_system
        self._facts = facts

    @property
    def file_system(self) -> "FtpFileSystem":
        return self._file_system

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def name(self) -> str:
        return remote_name(self._full_name)

    @property
    def exists(self) -> bool:
        return self._facts is not None

    @property
    def last_write_time(self) -> datetime:
        modified = parse_ftp_timestamp(self._require_facts().get("modify"))
        if modified is None:
            raise StorageAccessError(
                f"Server reported no modification time for {self._full_name}",
                self._full_name,
            )
        return modified

    @property
    def length(self) -> int:
        size = self._require_facts().get("size", "0")
        try:
            return int(size)
        except ValueError:
            return 0

    @property
    def directory(self) -> "FtpDirectoryInfo":
        return FtpDirectoryInfo(posixpath.dirname(self._full_name), self._file_system)

    def open(self) -> BinaryIO:
        return self._file_system.retrieve(self._full_name)

    def _require_facts(self) -> dict[str, str]:
        if self._facts is None:
            raise StorageAccessError(
                f"File not found: {self._full_name}", self._full_name
            )
        return self._facts


class FtpDirectoryInfo(DirectoryInfo):
    """A directory on an FTP server."""

    def __init__(self, path: str, file_system: "FtpFileSystem"):
        self._full_name = _validate_path(path)
        self._file_system = file_system

    @property
    def file_system(self) -> "FtpFileSystem":
        return self._file_system

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def name(self) -> str:
        return remote_name(self._full_name)

    @property
    def exists(self) -> bool:
        return self._file_system.directory_exists(self._full_name)

    @property
    def parent(self) -> Optional["FtpDirectoryInfo"]:
        if self._full_name == "/":
            return None
        return FtpDirectoryInfo(posixpath.dirname(self._full_name), self._file_system)

    def get_files(self) -> list[FileInfo]:
        return [
            FtpFileInfo(remote_join(self._full_name, name), self._file_system, facts)
            for name, facts in self._file_system.list_entries(self._full_name)
            if facts.get("type") == "file"
        ]

    def get_directories(self) -> list[DirectoryInfo]:
        return [
            FtpDirectoryInfo(remote_join(self._full_name, name), self._file_system)
            for name, facts in self._file_system.list_entries(self._full_name)
            if facts.get("type") == "dir"
        ]


class FtpFileSystem(FileSystem):
    """File system on an FTP server.

    The connection is opened on first use and kept until :meth:`close`.
    """

    timestamp_tolerance = COARSE_TIMESTAMP_TOLERANCE

    def __init__(
        self,
        address: str,
        port: int = DEFAULT_FTP_PORT,
        user_name: str = "anonymous",
        password: str = "",
        timeout: Optional[float] = None,
        ftp_factory: Callable[[], ftplib.FTP] = ftplib.FTP,
    ):
        if not address:
            raise ArgumentError("FTP address must not be empty")
        self.address = address
        self.port = port
        self.user_name = user_name
        self.password = password
        self.timeout = timeout if timeout is not None else config.ftp_timeout
        self.copy_buffer_size = config.copy_buffer_size
        self._ftp_factory = ftp_factory
        self._ftp: Optional[ftplib.FTP] = None

    @classmethod
    def from_endpoint(cls, endpoint: "FtpEndpoint") -> "FtpFileSystem":
        return cls(
            address=endpoint.address,
            port=endpoint.port,
            user_name=endpoint.user_name,
            password=endpoint.password,
        )

    # -------------------------------------------------------------------------
    # Connection handling
    # -------------------------------------------------------------------------

    def _connection(self) -> ftplib.FTP:
        if self._ftp is None:
            logger.debug(f"Connecting to {self.address}:{self.port}")
            ftp = self._ftp_factory()
            with self._translate_errors(self.address):
                ftp.connect(self.address, self.port, timeout=self.timeout)
                ftp.login(self.user_name, self.password)
                ftp.set_pasv(True)
            self._ftp = ftp
        return self._ftp

    def close(self) -> None:
        if self._ftp is None:
            return
        ftp, self._ftp = self._ftp, None
        try:
            ftp.quit()
        except ftplib.all_errors as e:
            logger.debug(f"FTP quit failed, closing socket: {e}")
            ftp.close()

    @contextmanager
    def _translate_errors(self, path: str, listing: bool = False) -> Iterator[None]:
        try:
            yield
        except StorageAccessError:
            raise
        except ftplib.error_perm as e:
            if listing:
                raise SubtreeAccessError(f"Cannot list {path}: {e}", path) from e
            raise StorageAccessError(f"FTP error for {path}: {e}", path) from e
        except ftplib.all_errors as e:
            raise StorageAccessError(f"FTP error for {path}: {e}", path) from e

    # -------------------------------------------------------------------------
    # Raw operations
    # -------------------------------------------------------------------------

    def list_entries(self, path: str) -> list[tuple[str, dict[str, str]]]:
        """List a remote directory via ``MLSD``, sorted by name.

        Raises:
            SubtreeAccessError: If the server refuses the listing
        """
        ftp = self._connection()
        with self._translate_errors(path, listing=True):
            entries = list(ftp.mlsd(path, facts=["type", "size", "modify"]))
        return sorted(
            (
                (name, facts)
                for name, facts in entries
                if name not in (".", "..")
                and facts.get("type") not in ("cdir", "pdir")
            ),
            key=lambda item: item[0],
        )

    def retrieve(self, path: str) -> BinaryIO:
        """Download a file into a spooled temporary file."""
        ftp = self._connection()
        buffer = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
        try:
            with self._translate_errors(path):
                ftp.retrbinary(f"RETR {path}", buffer.write)
        except StorageAccessError:
            buffer.close()
            raise
        buffer.seek(0)
        return buffer  # type: ignore[return-value]

    def _lookup(self, path: str) -> Optional[dict[str, str]]:
        parent = posixpath.dirname(path)
        name = posixpath.basename(path)
        try:
            entries = self.list_entries(parent)
        except SubtreeAccessError:
            return None
        for entry_name, facts in entries:
            if entry_name == name:
                return facts
        return None

    # -------------------------------------------------------------------------
    # FileSystem contract
    # -------------------------------------------------------------------------

    def get_file_info(self, path: str) -> FtpFileInfo:
        path = _validate_path(path)
        facts = self._lookup(path)
        if facts is not None and facts.get("type") != "file":
            facts = None
        return FtpFileInfo(path, self, facts)

    def get_directory_info(self, path: str) -> FtpDirectoryInfo:
        return FtpDirectoryInfo(path, self)

    def directory_exists(self, path: str) -> bool:
        path = _validate_path(path)
        if path == "/":
            return True
        facts = self._lookup(path)
        return facts is not None and facts.get("type") == "dir"

    def combine_path(self, directory: str, name: str) -> str:
        return remote_join(directory, name)

    def create_directory(self, path: str) -> FtpDirectoryInfo:
        path = _validate_path(path)
        ftp = self._connection()
        current = "/"
        for part in path.strip("/").split("/"):
            current = remote_join(current, part)
            if self.directory_exists(current):
                continue
            with self._translate_errors(current):
                ftp.mkd(current)
        return FtpDirectoryInfo(path, self)

    def delete_file(self, file: FileInfo) -> None:
        ftp = self._connection()
        with self._translate_errors(file.full_name):
            ftp.delete(file.full_name)

    def delete_directory(self, directory: DirectoryInfo) -> None:
        ftp = self._connection()
        try:
            entries = self.list_entries(directory.full_name)
        except SubtreeAccessError as e:
            raise StorageAccessError(str(e), directory.full_name) from e

        for name, facts in entries:
            path = remote_join(directory.full_name, name)
            if facts.get("type") == "dir":
                self.delete_directory(FtpDirectoryInfo(path, self))
            else:
                with self._translate_errors(path):
                    ftp.delete(path)

        with self._translate_errors(directory.full_name):
            ftp.rmd(directory.full_name)

    def write_file(
        self,
        path: str,
        stream: BinaryIO,
        length: int,
        last_write_time: datetime,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        path = _validate_path(path)
        ftp = self._connection()
        copied = 0

        def on_block(block: bytes) -> None:
            nonlocal copied
            copied += len(block)
            if progress_callback is not None:
                progress_callback(copied, length)

        with self._translate_errors(path):
            ftp.storbinary(
                f"STOR {path}",
                stream,
                blocksize=self.copy_buffer_size,
                callback=on_block,
            )

        with self._translate_errors(path):
            try:
                ftp.sendcmd(f"MFMT {format_ftp_timestamp(last_write_time)} {path}")
            except ftplib.error_perm as e:
                # MFMT is an extension; without it the server keeps the upload time
                logger.debug(f"Server does not support MFMT for {path}: {e}")
