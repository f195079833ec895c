"""Tests for the FTP file system."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from flagsync.exceptions import ArgumentError, StorageAccessError, SubtreeAccessError
from flagsync.filesystem import FtpFileSystem, VirtualFileSystem
from flagsync.sync.settings import FtpEndpoint


class TestFtpFileSystem:
    """Test FtpFileSystem against a fake server."""

    @pytest.fixture
    def server(self, ftp_server):
        return ftp_server

    @pytest.fixture
    def fs(self, server):
        return FtpFileSystem(
            "ftp.example.com",
            user_name="me",
            password="secret",
            timeout=5,
            ftp_factory=lambda: server,
        )

    def test_connects_lazily(self, fs, server):
        """Test that the connection is opened on first use."""
        assert server.connect_args is None

        fs.directory_exists("/htdocs")

        assert server.connect_args == ("ftp.example.com", 21, 5)
        assert server.login_args == ("me", "secret")

    def test_from_endpoint(self):
        endpoint = FtpEndpoint("ftp.example.com", port=2121, user_name="u", password="p")
        fs = FtpFileSystem.from_endpoint(endpoint)

        assert fs.address == "ftp.example.com"
        assert fs.port == 2121
        assert fs.user_name == "u"
        assert fs.password == "p"

    def test_coarse_timestamp_tolerance(self, fs):
        assert fs.timestamp_tolerance == 2.0

    def test_invalid_paths(self, fs):
        with pytest.raises(ArgumentError):
            fs.get_directory_info("")
        with pytest.raises(ArgumentError):
            fs.get_file_info("/a.txt\r\nDELE /index.html")

    def test_listing(self, fs, server):
        """Test that listings are sorted and skip the cdir entry."""
        server.add_file("/site/b.html", b"b")
        server.add_file("/site/a.html", b"aa", modify="20240101120000")
        server.add_directory("/site/css")

        directory = fs.get_directory_info("/site")
        files = directory.get_files()

        assert [f.name for f in files] == ["a.html", "b.html"]
        assert [d.name for d in directory.get_directories()] == ["css"]
        assert files[0].length == 2
        assert files[0].last_write_time == datetime(
            2024, 1, 1, 12, 0, tzinfo=timezone.utc
        )

    def test_listing_refused(self, fs, server):
        """Test that a refused listing raises SubtreeAccessError."""
        server.add_directory("/private")
        server.denied.add("/private")

        with pytest.raises(SubtreeAccessError):
            fs.get_directory_info("/private").get_files()

    def test_file_and_directory_existence(self, fs, server):
        server.add_file("/site/index.html", b"<html>")

        assert fs.file_exists("/site/index.html")
        assert not fs.file_exists("/site/missing.html")
        assert not fs.file_exists("/missing/index.html")
        assert fs.directory_exists("/site")
        assert fs.directory_exists("/")
        assert not fs.directory_exists("/site/index.html")
        assert not fs.get_file_info("/site").exists

    def test_missing_file_has_no_timestamp(self, fs):
        with pytest.raises(StorageAccessError, match="File not found"):
            _ = fs.get_file_info("/missing.txt").last_write_time

    def test_upload_sets_modification_time(self, fs, server):
        """Test that uploads keep the source timestamp via MFMT."""
        server.add_directory("/site")
        virtual = VirtualFileSystem()
        source = virtual.add_file(
            "/local/index.html",
            b"<html></html>",
            last_write_time=datetime(2024, 3, 1, 8, 0, 30, tzinfo=timezone.utc),
        )
        progress = []

        copied = fs.copy_file(
            source,
            fs.get_directory_info("/site"),
            lambda copied, total: progress.append((copied, total)),
        )

        assert server.files["/site/index.html"] == (b"<html></html>", "20240301080030")
        assert copied.last_write_time == source.last_write_time
        assert progress[-1] == (13, 13)

    def test_upload_without_mfmt_support(self, server):
        """Servers without MFMT keep the upload time; the copy still succeeds."""
        server.supports_mfmt = False
        server.add_directory("/site")
        fs = FtpFileSystem("ftp.example.com", ftp_factory=lambda: server)
        source = VirtualFileSystem().add_file("/a.txt", b"x", last_write_time=0)

        copied = fs.copy_file(source, fs.get_directory_info("/site"))

        assert copied.exists
        assert server.files["/site/a.txt"][1] == "20991231235959"

    def test_upload_into_missing_directory(self, fs):
        source = VirtualFileSystem().add_file("/a.txt", b"x")

        with pytest.raises(StorageAccessError):
            fs.copy_file(source, fs.get_directory_info("/missing"))

    def test_download(self, fs, server):
        server.add_file("/site/data.bin", b"\x00\x01\x02", modify="20240101000000")
        virtual = VirtualFileSystem()
        target = virtual.add_directory("/backup")

        copied = virtual.copy_file(fs.get_file_info("/site/data.bin"), target)

        assert virtual.read_file("/backup/data.bin") == b"\x00\x01\x02"
        assert copied.last_write_time == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_download_failure(self, fs, server):
        server.add_file("/site/locked.bin", b"x")
        server.denied.add("/site/locked.bin")

        with pytest.raises(StorageAccessError):
            fs.get_file_info("/site/locked.bin").open()

    def test_create_directory_with_parents(self, fs, server):
        fs.create_directory("/a/b/c")

        assert {"/a", "/a/b", "/a/b/c"} <= server.directories

    def test_delete_directory_recursively(self, fs, server):
        server.add_file("/old/a.txt")
        server.add_file("/old/sub/b.txt")

        fs.get_directory_info("/old").delete()

        assert "/old" not in server.directories
        assert "/old/sub" not in server.directories
        assert server.files == {}

    def test_delete_file(self, fs, server):
        server.add_file("/a.txt")

        fs.delete_file(fs.get_file_info("/a.txt"))

        assert "/a.txt" not in server.files
        with pytest.raises(StorageAccessError):
            fs.delete_file(fs.get_file_info("/a.txt"))

    def test_connection_failure(self):
        """Test that network errors become StorageAccessError."""
        ftp = MagicMock()
        ftp.connect.side_effect = OSError("Connection refused")
        fs = FtpFileSystem("ftp.example.com", ftp_factory=lambda: ftp)

        with pytest.raises(StorageAccessError, match="Connection refused"):
            fs.get_directory_info("/site").get_files()

    def test_close_quits_connection(self, fs, server):
        fs.directory_exists("/")
        fs.directory_exists("/x")

        fs.close()

        assert server.quit_called

    def test_close_falls_back_to_socket_close(self):
        ftp = MagicMock()
        ftp.mlsd.return_value = iter([])
        ftp.quit.side_effect = EOFError()
        fs = FtpFileSystem("ftp.example.com", ftp_factory=lambda: ftp)
        fs.get_directory_info("/").get_files()

        fs.close()

        ftp.close.assert_called_once()

    def test_close_without_connection(self):
        factory = MagicMock()
        FtpFileSystem("ftp.example.com", ftp_factory=factory).close()

        factory.assert_not_called()
