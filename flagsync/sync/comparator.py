"""File comparison logic for backup and sync jobs."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..filesystem.base import FileInfo, FileSystem


class SyncAction(str, Enum):
    """Actions the merge phase can take for a source file."""

    CREATE = "create"
    """Copy a file that is missing in the target"""

    MODIFY = "modify"
    """Overwrite a stale target file"""

    SKIP = "skip"
    """Target is up to date"""


@dataclass
class SyncDecision:
    """Represents a decision about how to merge a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    source_file: FileInfo
    """Source file"""

    target_file: Optional[FileInfo]
    """Target file (if exists)"""


class FileComparator:
    """Decides whether a target file is stale compared to its source.

    A target is stale when the source was written later, or when both
    timestamps are equal but the lengths differ. Timestamps closer than
    ``tolerance`` seconds count as equal, which absorbs the coarse clocks
    of some backends.
    """

    def __init__(self, tolerance: float = 0.0):
        """Initialize file comparator.

        Args:
            tolerance: Seconds two timestamps may differ and still be equal
        """
        if tolerance < 0:
            raise ValueError("tolerance must not be negative")
        self.tolerance = tolerance

    @classmethod
    def for_file_systems(cls, *file_systems: FileSystem) -> "FileComparator":
        """Create a comparator using the coarsest tolerance of the backends."""
        tolerance = max(
            (fs.timestamp_tolerance for fs in file_systems), default=0.0
        )
        return cls(tolerance)

    def _time_difference(self, source: FileInfo, target: FileInfo) -> float:
        return (source.last_write_time - target.last_write_time).total_seconds()

    def is_newer(self, source: FileInfo, target: FileInfo) -> bool:
        """Whether ``source`` was written after ``target``."""
        return self._time_difference(source, target) > self.tolerance

    def has_same_time(self, source: FileInfo, target: FileInfo) -> bool:
        return abs(self._time_difference(source, target)) <= self.tolerance

    def compare(
        self, source_file: FileInfo, target_file: Optional[FileInfo]
    ) -> SyncDecision:
        """Compare a source file with its counterpart in the target.

        Args:
            source_file: File in the source directory
            target_file: File with the same name in the target directory,
                or None if there is none

        Returns:
            SyncDecision for this file
        """
        if target_file is None or not target_file.exists:
            return SyncDecision(
                action=SyncAction.CREATE,
                reason="File missing in target",
                source_file=source_file,
                target_file=None,
            )

        if self.is_newer(source_file, target_file):
            return SyncDecision(
                action=SyncAction.MODIFY,
                reason="Source file is newer",
                source_file=source_file,
                target_file=target_file,
            )

        if self.has_same_time(source_file, target_file) and (
            source_file.length != target_file.length
        ):
            reason = (
                f"Same timestamp but different sizes "
                f"({source_file.length} vs {target_file.length})"
            )
            return SyncDecision(
                action=SyncAction.MODIFY,
                reason=reason,
                source_file=source_file,
                target_file=target_file,
            )

        return SyncDecision(
            action=SyncAction.SKIP,
            reason="Target file is up to date",
            source_file=source_file,
            target_file=target_file,
        )
