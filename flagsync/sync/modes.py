"""Sync modes of a job."""

from enum import Enum


class SyncMode(str, Enum):
    """How a job reconciles directory A and directory B."""

    LOCAL_BACKUP = "localBackup"
    """Mirror a local directory into another local directory"""

    LOCAL_SYNC = "localSync"
    """Synchronize two local directories in both directions"""

    REMOTE_BACKUP = "remoteBackup"
    """Mirror a local directory onto an FTP server"""

    REMOTE_SYNC = "remoteSync"
    """Synchronize a local directory and an FTP directory in both directions"""

    @property
    def is_backup(self) -> bool:
        """Whether the mode mirrors A onto B, including deletions."""
        return self in (SyncMode.LOCAL_BACKUP, SyncMode.REMOTE_BACKUP)

    @property
    def is_sync(self) -> bool:
        """Whether the mode merges in both directions without deleting."""
        return not self.is_backup

    @property
    def is_remote(self) -> bool:
        """Whether directory B lives on an FTP server."""
        return self in (SyncMode.REMOTE_BACKUP, SyncMode.REMOTE_SYNC)

    @classmethod
    def from_string(cls, value: str) -> "SyncMode":
        """Parse a mode name or its abbreviation.

        Examples:
            >>> SyncMode.from_string("localBackup")
            <SyncMode.LOCAL_BACKUP: 'localBackup'>
            >>> SyncMode.from_string("rs")
            <SyncMode.REMOTE_SYNC: 'remoteSync'>
        """
        if not isinstance(value, str):
            raise ValueError(f"Invalid sync mode: {value!r}")
        abbreviations = {
            "lb": cls.LOCAL_BACKUP,
            "ls": cls.LOCAL_SYNC,
            "rb": cls.REMOTE_BACKUP,
            "rs": cls.REMOTE_SYNC,
        }
        if value in abbreviations:
            return abbreviations[value]
        for mode in cls:
            if mode.value.lower() == value.lower():
                return mode
        valid = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Invalid sync mode: {value!r} (valid modes: {valid})")
