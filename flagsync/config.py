"""Runtime configuration for FlagSync."""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "flagsync"


class Config:
    """Configuration read from environment variables.

    Every value has a default, so FlagSync works without any environment
    set up. Values are read on access, which lets tests patch ``os.environ``.
    """

    JOBS_FILE_ENV = "FLAGSYNC_JOBS_FILE"
    FTP_TIMEOUT_ENV = "FLAGSYNC_FTP_TIMEOUT"
    COPY_BUFFER_SIZE_ENV = "FLAGSYNC_COPY_BUFFER_SIZE"
    TIMESTAMP_TOLERANCE_ENV = "FLAGSYNC_TIMESTAMP_TOLERANCE"

    DEFAULT_FTP_TIMEOUT = 60.0
    DEFAULT_COPY_BUFFER_SIZE = 1024 * 1024
    DEFAULT_TIMESTAMP_TOLERANCE = 0.0

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or DEFAULT_CONFIG_DIR

    @property
    def jobs_file(self) -> Path:
        """Path of the JSON file holding the job settings."""
        value = os.environ.get(self.JOBS_FILE_ENV)
        if value:
            return Path(value).expanduser()
        return self.config_dir / "jobs.json"

    @property
    def ftp_timeout(self) -> float:
        """Socket timeout in seconds for FTP connections."""
        return self._get_float(self.FTP_TIMEOUT_ENV, self.DEFAULT_FTP_TIMEOUT)

    @property
    def copy_buffer_size(self) -> int:
        """Number of bytes read per chunk while copying a file."""
        value = self._get_float(
            self.COPY_BUFFER_SIZE_ENV, float(self.DEFAULT_COPY_BUFFER_SIZE)
        )
        return max(1, int(value))

    @property
    def timestamp_tolerance(self) -> float:
        """Tolerance in seconds when comparing local file timestamps."""
        return self._get_float(
            self.TIMESTAMP_TOLERANCE_ENV, self.DEFAULT_TIMESTAMP_TOLERANCE
        )

    def _get_float(self, name: str, default: float) -> float:
        value = os.environ.get(name)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {name}: {value!r}")
            return default


config = Config()
