"""Storage backends sharing one capability contract."""

from .base import DirectoryInfo, FileInfo, FileSystem, FileSystemInfo
from .ftp import FtpDirectoryInfo, FtpFileInfo, FtpFileSystem
from .local import LocalDirectoryInfo, LocalFileInfo, LocalFileSystem
from .virtual import VirtualDirectoryInfo, VirtualFileInfo, VirtualFileSystem

__all__ = [
    "FileSystem",
    "FileSystemInfo",
    "FileInfo",
    "DirectoryInfo",
    "LocalFileSystem",
    "LocalFileInfo",
    "LocalDirectoryInfo",
    "VirtualFileSystem",
    "VirtualFileInfo",
    "VirtualDirectoryInfo",
    "FtpFileSystem",
    "FtpFileInfo",
    "FtpDirectoryInfo",
]
