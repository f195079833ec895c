"""Shared fixtures for the FlagSync tests."""

import ftplib
import posixpath

import pytest


class FakeFtp:
    """Minimal in-memory stand-in for ``ftplib.FTP``."""

    def __init__(self, supports_mfmt: bool = True):
        self.files: dict[str, tuple[bytes, str]] = {}
        self.directories = {"/"}
        self.denied: set[str] = set()
        self.supports_mfmt = supports_mfmt
        self.connect_args = None
        self.login_args = None
        self.quit_called = False
        self.mlsd_calls = 0

    # Connection
    def connect(self, host, port, timeout=None):
        self.connect_args = (host, port, timeout)

    def login(self, user, passwd):
        self.login_args = (user, passwd)

    def set_pasv(self, value):
        pass

    def quit(self):
        self.quit_called = True

    def close(self):
        pass

    # Setup helpers
    def add_file(self, path, content=b"", modify="20240115103000"):
        self.add_directory(posixpath.dirname(path))
        self.files[path] = (content, modify)

    def add_directory(self, path):
        while path not in self.directories:
            self.directories.add(path)
            path = posixpath.dirname(path)

    # Commands
    def mlsd(self, path, facts=()):
        self.mlsd_calls += 1
        if path in self.denied or path not in self.directories:
            raise ftplib.error_perm("550 No such directory")
        yield ".", {"type": "cdir"}
        for directory in sorted(self.directories):
            if directory != "/" and posixpath.dirname(directory) == path:
                yield posixpath.basename(directory), {"type": "dir"}
        for name, (content, modify) in sorted(self.files.items()):
            if posixpath.dirname(name) == path:
                yield posixpath.basename(name), {
                    "type": "file",
                    "size": str(len(content)),
                    "modify": modify,
                }

    def retrbinary(self, cmd, callback):
        path = cmd[len("RETR ") :]
        if path not in self.files or path in self.denied:
            raise ftplib.error_perm("550 File not found")
        callback(self.files[path][0])

    def storbinary(self, cmd, fp, blocksize=8192, callback=None):
        path = cmd[len("STOR ") :]
        if posixpath.dirname(path) not in self.directories or path in self.denied:
            raise ftplib.error_perm("553 Could not create file")
        data = b""
        while True:
            block = fp.read(blocksize)
            if not block:
                break
            data += block
            if callback is not None:
                callback(block)
        self.files[path] = (data, "20991231235959")

    def sendcmd(self, cmd):
        if not cmd.startswith("MFMT ") or not self.supports_mfmt:
            raise ftplib.error_perm("500 Unknown command")
        _, modify, path = cmd.split(" ", 2)
        content, _ = self.files[path]
        self.files[path] = (content, modify)
        return "213 Modify=" + modify

    def mkd(self, path):
        if posixpath.dirname(path) not in self.directories:
            raise ftplib.error_perm("550 Cannot create directory")
        self.directories.add(path)
        return path

    def delete(self, path):
        if path not in self.files or path in self.denied:
            raise ftplib.error_perm("550 File not found")
        del self.files[path]

    def rmd(self, path):
        prefix = path + "/"
        if any(name.startswith(prefix) for name in self.files):
            raise ftplib.error_perm("550 Directory not empty")
        self.directories.discard(path)


@pytest.fixture
def ftp_server():
    """Provide an in-memory FTP server."""
    return FakeFtp()
