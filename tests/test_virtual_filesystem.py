"""Tests for the in-memory file system."""

import io
from datetime import datetime, timezone

import pytest

from flagsync.exceptions import ArgumentError, StorageAccessError, SubtreeAccessError
from flagsync.filesystem import VirtualDirectoryInfo, VirtualFileInfo, VirtualFileSystem


class TestVirtualEntries:
    """Tests for entry construction and validation."""

    def test_paths_are_normalized(self):
        fs = VirtualFileSystem()
        assert fs.get_directory_info("docs/sub/").full_name == "/docs/sub"
        assert fs.get_directory_info("\\docs\\sub").full_name == "/docs/sub"
        assert fs.get_file_info("/docs//a.txt").name == "a.txt"

    @pytest.mark.parametrize("path", [None, "", "   ", "a\x00b", 42])
    def test_invalid_paths(self, path):
        """Test that invalid paths raise ArgumentError."""
        fs = VirtualFileSystem()
        with pytest.raises(ArgumentError):
            fs.get_directory_info(path)

    def test_argument_error_is_value_error(self):
        with pytest.raises(ValueError):
            VirtualDirectoryInfo("", VirtualFileSystem())

    def test_file_requires_timestamp(self):
        fs = VirtualFileSystem()
        directory = fs.get_directory_info("/docs")
        with pytest.raises(ArgumentError, match="last_write_time"):
            VirtualFileInfo("/docs/a.txt", 1, None, directory)
        with pytest.raises(ArgumentError, match="last_write_time"):
            VirtualFileInfo("/docs/a.txt", 1, "yesterday", directory)

    def test_file_requires_directory(self):
        now = datetime.now(timezone.utc)
        with pytest.raises(ArgumentError, match="directory"):
            VirtualFileInfo("/docs/a.txt", 1, now, None)

    def test_file_requires_valid_length(self):
        fs = VirtualFileSystem()
        now = datetime.now(timezone.utc)
        with pytest.raises(ArgumentError, match="length"):
            VirtualFileInfo("/docs/a.txt", -1, now, fs.get_directory_info("/docs"))

    def test_directory_requires_file_system(self):
        with pytest.raises(ArgumentError, match="file_system"):
            VirtualDirectoryInfo("/docs", None)

    def test_parent(self):
        fs = VirtualFileSystem()
        assert fs.get_directory_info("/docs/sub").parent.full_name == "/docs"
        assert fs.get_directory_info("/").parent is None


class TestVirtualFileSystem:
    """Tests for VirtualFileSystem operations."""

    def test_add_file_creates_parents(self):
        fs = VirtualFileSystem()
        file = fs.add_file("/a/b/c.txt", "hello", last_write_time=10)

        assert file.exists
        assert file.length == 5
        assert file.last_write_time == datetime.fromtimestamp(10, tz=timezone.utc)
        assert fs.directory_exists("/a")
        assert fs.directory_exists("/a/b")

    def test_missing_entries(self):
        fs = VirtualFileSystem()
        assert not fs.file_exists("/missing.txt")
        assert not fs.directory_exists("/missing")
        assert fs.get_file_info("/missing.txt").length == 0

    def test_listing_is_sorted_and_shallow(self):
        fs = VirtualFileSystem()
        fs.add_file("/d/b.txt")
        fs.add_file("/d/a.txt")
        fs.add_file("/d/sub/deep.txt")
        fs.add_directory("/d/empty")

        directory = fs.get_directory_info("/d")

        assert [f.name for f in directory.get_files()] == ["a.txt", "b.txt"]
        assert [d.name for d in directory.get_directories()] == ["empty", "sub"]

    def test_walk_files(self):
        fs = VirtualFileSystem()
        fs.add_file("/d/a.txt")
        fs.add_file("/d/sub/b.txt")
        fs.add_file("/d/sub/deeper/c.txt")

        names = [f.full_name for f in fs.get_directory_info("/d").walk_files()]

        assert names == ["/d/a.txt", "/d/sub/b.txt", "/d/sub/deeper/c.txt"]

    def test_listing_missing_directory(self):
        fs = VirtualFileSystem()
        with pytest.raises(SubtreeAccessError):
            fs.get_directory_info("/missing").get_files()

    def test_denied_directory(self):
        """Test that denied directories fail listing with SubtreeAccessError."""
        fs = VirtualFileSystem()
        fs.add_file("/d/secret/a.txt")
        fs.deny_access("/d/secret")

        with pytest.raises(SubtreeAccessError, match="Access denied"):
            fs.get_directory_info("/d/secret").get_files()

        fs.allow_access("/d/secret")
        assert len(fs.get_directory_info("/d/secret").get_files()) == 1

    def test_create_and_delete_directory(self):
        fs = VirtualFileSystem()
        fs.get_directory_info("/x/y").create()
        fs.add_file("/x/y/z.txt")

        assert fs.directory_exists("/x/y")

        fs.get_directory_info("/x").delete()

        assert not fs.directory_exists("/x")
        assert not fs.directory_exists("/x/y")
        assert not fs.file_exists("/x/y/z.txt")
        assert fs.directory_exists("/")

    def test_delete_directory_keeps_siblings_with_common_prefix(self):
        fs = VirtualFileSystem()
        fs.add_file("/data/a.txt")
        fs.add_file("/data2/b.txt")

        fs.get_directory_info("/data").delete()

        assert fs.file_exists("/data2/b.txt")

    def test_delete_directory_with_denied_entry(self):
        fs = VirtualFileSystem()
        fs.add_file("/data/locked.txt")
        fs.deny_access("/data/locked.txt")

        with pytest.raises(StorageAccessError):
            fs.get_directory_info("/data").delete()
        assert fs.file_exists("/data/locked.txt")

    def test_read_only_directory(self):
        """Test that read-only entries can be listed and read but not changed."""
        fs = VirtualFileSystem()
        file = fs.add_file("/ro/keep.txt", b"keep")
        fs.add_file("/src/new.txt", b"new")
        fs.mark_read_only("/ro")
        directory = fs.get_directory_info("/ro")

        assert [f.name for f in directory.get_files()] == ["keep.txt"]
        assert fs.read_file("/ro/keep.txt") == b"keep"

        with pytest.raises(StorageAccessError, match="Read-only"):
            fs.delete_file(file)
        with pytest.raises(StorageAccessError, match="Read-only"):
            fs.get_directory_info("/ro/sub").create()
        with pytest.raises(StorageAccessError, match="Read-only"):
            fs.copy_file(fs.get_file_info("/src/new.txt"), directory)
        with pytest.raises(StorageAccessError, match="Read-only"):
            directory.delete()

        assert fs.file_exists("/ro/keep.txt")
        assert not fs.file_exists("/ro/new.txt")

    def test_delete_directory_with_read_only_entry(self):
        fs = VirtualFileSystem()
        fs.add_file("/data/keep.txt")
        fs.mark_read_only("/data/keep.txt")

        with pytest.raises(StorageAccessError, match="Read-only"):
            fs.get_directory_info("/data").delete()
        assert fs.file_exists("/data/keep.txt")

    def test_delete_file(self):
        fs = VirtualFileSystem()
        file = fs.add_file("/a.txt")

        fs.delete_file(file)

        assert not file.exists
        with pytest.raises(StorageAccessError, match="File not found"):
            fs.delete_file(file)

    def test_write_file_requires_parent(self):
        fs = VirtualFileSystem()
        now = datetime.now(timezone.utc)
        with pytest.raises(StorageAccessError, match="Directory not found"):
            fs.write_file("/missing/a.txt", io.BytesIO(b"x"), 1, now)

    def test_read_file(self):
        fs = VirtualFileSystem()
        fs.add_file("/a.txt", b"data")

        assert fs.read_file("/a.txt") == b"data"
        assert fs.get_file_info("/a.txt").open().read() == b"data"
        with pytest.raises(StorageAccessError):
            fs.read_file("/b.txt")


class TestVirtualCopy:
    """Tests for copying between file systems."""

    def test_copy_preserves_content_and_timestamp(self):
        source_fs = VirtualFileSystem()
        target_fs = VirtualFileSystem()
        source = source_fs.add_file("/src/a.txt", b"hello world", last_write_time=100)
        target_dir = target_fs.add_directory("/dst")

        copied = target_fs.copy_file(source, target_dir)

        assert copied.full_name == "/dst/a.txt"
        assert copied.length == 11
        assert copied.last_write_time == source.last_write_time
        assert target_fs.read_file("/dst/a.txt") == b"hello world"

    def test_copy_reports_progress(self):
        """Test that the progress callback receives cumulative bytes."""
        fs = VirtualFileSystem()
        fs.copy_buffer_size = 4
        source = fs.add_file("/src/a.txt", b"0123456789")
        target_dir = fs.add_directory("/dst")
        progress = []

        fs.copy_file(source, target_dir, lambda copied, total: progress.append((copied, total)))

        assert progress == [(4, 10), (8, 10), (10, 10)]

    def test_copy_overwrites(self):
        fs = VirtualFileSystem()
        source = fs.add_file("/src/a.txt", b"new", last_write_time=20)
        fs.add_file("/dst/a.txt", b"old content", last_write_time=10)

        fs.copy_file(source, fs.get_directory_info("/dst"))

        assert fs.read_file("/dst/a.txt") == b"new"
        assert fs.get_file_info("/dst/a.txt").last_write_time == source.last_write_time

    def test_copy_from_denied_file(self):
        fs = VirtualFileSystem()
        source = fs.add_file("/src/a.txt", b"x")
        fs.add_directory("/dst")
        fs.deny_access("/src/a.txt")

        with pytest.raises(StorageAccessError, match="Access denied"):
            fs.copy_file(source, fs.get_directory_info("/dst"))
        assert not fs.file_exists("/dst/a.txt")
