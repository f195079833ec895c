"""Utility functions for FlagSync."""

import posixpath
from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Timestamp tolerance for backends with second-granular clocks (FTP)
COARSE_TIMESTAMP_TOLERANCE: float = 2.0

# Default FTP control port
DEFAULT_FTP_PORT: int = 21


# =============================================================================
# Timestamp utilities
# =============================================================================


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are interpreted as local time, like
    ``datetime.timestamp()`` does.
    """
    if value.tzinfo is None:
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    return value.astimezone(timezone.utc)


def from_timestamp(timestamp: float) -> datetime:
    """Convert a Unix timestamp to a UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def parse_ftp_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an FTP ``MDTM``/``MLSD`` timestamp.

    Args:
        timestamp_str: Timestamp in ``YYYYMMDDHHMMSS[.sss]`` format (UTC)

    Returns:
        Timezone-aware UTC datetime or None if parsing fails

    Examples:
        >>> parse_ftp_timestamp("20240115103000")
        datetime.datetime(2024, 1, 15, 10, 30, tzinfo=datetime.timezone.utc)
    """
    if not timestamp_str:
        return None

    timestamp_str = timestamp_str.strip()
    fraction = ""
    if "." in timestamp_str:
        timestamp_str, fraction = timestamp_str.split(".", 1)

    try:
        dt = datetime.strptime(timestamp_str, "%Y%m%d%H%M%S")
    except ValueError:
        return None

    if fraction.isdigit():
        dt = dt.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return dt.replace(tzinfo=timezone.utc)


def format_ftp_timestamp(value: datetime) -> str:
    """Format a datetime for the FTP ``MFMT`` command (UTC, seconds)."""
    return to_utc(value).strftime("%Y%m%d%H%M%S")


# =============================================================================
# Path utilities
# =============================================================================


def remote_join(directory: str, name: str) -> str:
    """Join a remote (POSIX) directory path and a name."""
    return posixpath.join(directory or "/", name)


def remote_name(path: str) -> str:
    """Return the last segment of a remote (POSIX) path."""
    stripped = path.rstrip("/")
    return posixpath.basename(stripped) if stripped else "/"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
