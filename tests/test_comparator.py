"""Tests for the FileComparator class."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from flagsync.filesystem.base import FileInfo
from flagsync.sync.comparator import FileComparator, SyncAction

BASE_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def _file(seconds: float = 0, length: int = 100, exists: bool = True) -> Mock:
    """Create a file entry mock written ``seconds`` after BASE_TIME."""
    file = Mock(spec=FileInfo)
    file.full_name = "/data/test.txt"
    file.name = "test.txt"
    file.exists = exists
    file.length = length
    file.last_write_time = BASE_TIME + timedelta(seconds=seconds)
    return file


class TestStaleness:
    """Tests for the staleness rule."""

    def test_newer_source_is_stale(self):
        comparator = FileComparator()
        assert comparator.compare(_file(10), _file(5)).action == SyncAction.MODIFY

    def test_older_source_is_not_stale(self):
        """An older source never overwrites a newer target."""
        comparator = FileComparator()
        assert comparator.compare(_file(5), _file(10)).action == SyncAction.SKIP

    def test_same_time_different_length_is_stale(self):
        comparator = FileComparator()
        decision = comparator.compare(_file(0, length=10), _file(0, length=20))
        assert decision.action == SyncAction.MODIFY

    def test_same_time_same_length_is_not_stale(self):
        comparator = FileComparator()
        assert comparator.compare(_file(0), _file(0)).action == SyncAction.SKIP

    def test_tolerance_absorbs_small_differences(self):
        """Timestamps within the tolerance count as equal."""
        comparator = FileComparator(tolerance=2.0)

        assert not comparator.is_newer(_file(1.5), _file(0))
        assert comparator.has_same_time(_file(1.5), _file(0))
        assert comparator.is_newer(_file(2.5), _file(0))

    def test_tolerance_with_different_length(self):
        comparator = FileComparator(tolerance=2.0)
        decision = comparator.compare(_file(1, length=1), _file(0, length=2))
        assert decision.action == SyncAction.MODIFY

    def test_negative_tolerance(self):
        with pytest.raises(ValueError, match="must not be negative"):
            FileComparator(tolerance=-1)


class TestCompare:
    """Tests for merge decisions."""

    def test_missing_target_creates(self):
        decision = FileComparator().compare(_file(), None)

        assert decision.action == SyncAction.CREATE
        assert decision.reason == "File missing in target"
        assert decision.target_file is None

    def test_non_existing_target_creates(self):
        decision = FileComparator().compare(_file(), _file(exists=False))
        assert decision.action == SyncAction.CREATE

    def test_newer_source_modifies(self):
        decision = FileComparator().compare(_file(10), _file(5))

        assert decision.action == SyncAction.MODIFY
        assert decision.reason == "Source file is newer"

    def test_size_mismatch_modifies(self):
        decision = FileComparator().compare(_file(0, length=1), _file(0, length=2))

        assert decision.action == SyncAction.MODIFY
        assert "different sizes" in decision.reason

    def test_up_to_date_skips(self):
        decision = FileComparator().compare(_file(0), _file(0))

        assert decision.action == SyncAction.SKIP
        assert decision.reason == "Target file is up to date"


class TestForFileSystems:
    """Tests for deriving the tolerance from file systems."""

    def test_uses_coarsest_tolerance(self):
        local = Mock(timestamp_tolerance=0.0)
        ftp = Mock(timestamp_tolerance=2.0)

        assert FileComparator.for_file_systems(local, ftp).tolerance == 2.0

    def test_without_file_systems(self):
        assert FileComparator.for_file_systems().tolerance == 0.0
