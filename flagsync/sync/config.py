"""Loading job settings from JSON files."""

import json
import logging
from pathlib import Path
from typing import Any, Union

from ..exceptions import JobConfigError
from .settings import JobSetting

logger = logging.getLogger(__name__)


def parse_job_settings(data: Any) -> list[JobSetting]:
    """Parse job settings from decoded JSON.

    Accepts either a list of job dictionaries or an object with a
    ``jobs`` list.

    Raises:
        JobConfigError: If the structure or a job is invalid
    """
    if isinstance(data, dict):
        data = data.get("jobs")
    if not isinstance(data, list):
        raise JobConfigError("Job settings must be a list of jobs")

    settings: list[JobSetting] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise JobConfigError(f"Job #{index + 1} must be an object")
        try:
            settings.append(JobSetting.from_dict(item))
        except JobConfigError as e:
            raise JobConfigError(f"Job #{index + 1}: {e}") from e
    return settings


def load_job_settings_from_json(path: Union[str, Path]) -> list[JobSetting]:
    """Load job settings from a JSON file.

    Examples:
        A jobs file looks like this::

            [
                {
                    "name": "Documents",
                    "directoryA": "/home/user/Documents",
                    "directoryB": "/mnt/backup/Documents",
                    "syncMode": "localBackup"
                },
                {
                    "name": "Website",
                    "directoryA": "/home/user/site",
                    "directoryB": "/htdocs",
                    "syncMode": "remoteSync",
                    "isIncluded": false,
                    "ftp": {"address": "ftp.example.com", "userName": "me"}
                }
            ]

    Raises:
        JobConfigError: If the file cannot be read or is invalid
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise JobConfigError(f"Cannot read job settings {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise JobConfigError(f"Invalid JSON in {path}: {e}") from e

    settings = parse_job_settings(data)
    logger.debug(f"Loaded {len(settings)} job setting(s) from {path}")
    return settings
