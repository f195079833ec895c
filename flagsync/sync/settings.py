"""Job settings: one configured backup or sync task."""

from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import JobConfigError
from ..utils import DEFAULT_FTP_PORT
from .modes import SyncMode


@dataclass
class FtpEndpoint:
    """Connection data of an FTP server."""

    address: str
    port: int = DEFAULT_FTP_PORT
    user_name: str = "anonymous"
    password: str = ""

    def __post_init__(self) -> None:
        if not self.address:
            raise JobConfigError("FTP address must not be empty")
        try:
            self.port = int(self.port)
        except (TypeError, ValueError) as e:
            raise JobConfigError(f"Invalid FTP port: {self.port!r}") from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FtpEndpoint":
        """Create an endpoint from a dictionary with camelCase keys."""
        return cls(
            address=data.get("address", ""),
            port=data.get("port", DEFAULT_FTP_PORT),
            user_name=data.get("userName", "anonymous"),
            password=data.get("password", ""),
        )

    def __repr__(self) -> str:
        return (
            f"FtpEndpoint(address={self.address!r}, port={self.port}, "
            f"user_name={self.user_name!r})"
        )


@dataclass
class JobSetting:
    """Settings of a single job.

    For remote modes ``directory_a`` is a local path and ``directory_b``
    is a path on the FTP server described by ``ftp``.

    Examples:
        >>> setting = JobSetting("docs", "/home/user/docs", "/mnt/backup/docs")
        >>> setting.sync_mode
        <SyncMode.LOCAL_BACKUP: 'localBackup'>
    """

    name: str
    directory_a: str
    directory_b: str
    sync_mode: SyncMode = SyncMode.LOCAL_BACKUP
    is_included: bool = True
    ftp: Optional[FtpEndpoint] = None

    def __post_init__(self) -> None:
        if not isinstance(self.sync_mode, SyncMode):
            try:
                self.sync_mode = SyncMode.from_string(self.sync_mode)
            except ValueError as e:
                raise JobConfigError(str(e)) from e

        if not self.directory_a:
            raise JobConfigError(f"Job {self.name!r}: directory A must not be empty")
        if not self.directory_b:
            raise JobConfigError(f"Job {self.name!r}: directory B must not be empty")
        if self.sync_mode.is_remote and self.ftp is None:
            raise JobConfigError(
                f"Job {self.name!r}: mode {self.sync_mode.value} "
                "requires an FTP endpoint"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobSetting":
        """Create job settings from a dictionary.

        Args:
            data: Dictionary with keys ``name``, ``directoryA``,
                ``directoryB``, ``syncMode`` and optionally ``isIncluded``
                and ``ftp`` (``address``, ``port``, ``userName``,
                ``password``)

        Raises:
            JobConfigError: If required fields are missing or invalid
        """
        required = ["directoryA", "directoryB", "syncMode"]
        missing = [key for key in required if key not in data]
        if missing:
            raise JobConfigError(f"Missing required fields: {', '.join(missing)}")

        ftp_data = data.get("ftp")
        ftp = FtpEndpoint.from_dict(ftp_data) if ftp_data else None

        return cls(
            name=data.get("name") or data["directoryA"],
            directory_a=data["directoryA"],
            directory_b=data["directoryB"],
            sync_mode=data["syncMode"],
            is_included=bool(data.get("isIncluded", True)),
            ftp=ftp,
        )

    @classmethod
    def parse_literal(
        cls,
        literal: str,
        name: Optional[str] = None,
        ftp: Optional[FtpEndpoint] = None,
    ) -> "JobSetting":
        """Parse a job from ``/path/a:mode:/path/b``.

        Windows drive letters (``C:``) in either path are kept intact.

        Examples:
            >>> JobSetting.parse_literal("/home/docs:lb:/mnt/backup").directory_b
            '/mnt/backup'
        """
        parts = _split_literal(literal)
        if len(parts) != 3:
            raise JobConfigError(
                f"Invalid job literal {literal!r}, expected A:mode:B"
            )
        directory_a, mode, directory_b = parts
        return cls(
            name=name or directory_a,
            directory_a=directory_a,
            directory_b=directory_b,
            sync_mode=mode,
            ftp=ftp,
        )


def _split_literal(literal: str) -> list[str]:
    """Split on colons that are not part of a Windows drive letter."""
    parts: list[str] = []
    current = ""
    for index, char in enumerate(literal):
        is_drive_colon = (
            char == ":"
            and len(current) == 1
            and current.isalpha()
            and literal[index + 1 : index + 2] in ("\\", "/")
        )
        if char == ":" and not is_drive_colon:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts
