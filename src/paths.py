"""Locating the VRChat log directory and its output_log files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from errors import LogDirNotFoundError, NoLogFilesError

logger = logging.getLogger(__name__)

ENV_LOG_DIR = "VRCLOG_LOGDIR"
LOG_FILE_PATTERN = "output_log_*.txt"

PathLike = Union[str, Path]


def default_log_dirs() -> List[Path]:
    """Return candidate VRChat log directories in priority order."""

    local_app_data = os.environ.get("LOCALAPPDATA", "")
    if not local_app_data:
        user_profile = os.environ.get("USERPROFILE", "")
        if user_profile:
            local_app_data = str(Path(user_profile) / "AppData" / "Local")

    if not local_app_data:
        return []

    # LocalLow sits next to Local
    local_low = Path(local_app_data).parent / "LocalLow"
    return [
        local_low / "VRChat" / "VRChat",
        local_low / "VRChat" / "vrchat",
    ]


def _matching_files(directory: Path) -> List[Path]:
    return [path for path in directory.glob(LOG_FILE_PATTERN) if path.is_file()]


def _resolve_log_dir(candidate: PathLike) -> Optional[Path]:
    """Resolve symlinks and return the directory if it holds at least one log file."""

    path = Path(candidate).expanduser()
    if not path.is_dir():
        return None
    try:
        resolved = path.resolve(strict=True)
    except OSError:
        resolved = path
    if not _matching_files(resolved):
        return None
    return resolved


def find_log_dir(explicit: Optional[PathLike] = None) -> Path:
    """
    Return the VRChat log directory.

    Priority: ``explicit`` (if non-empty), then the ``VRCLOG_LOGDIR``
    environment variable, then :func:`default_log_dirs`.
    """

    if explicit:
        resolved = _resolve_log_dir(explicit)
        if resolved is not None:
            return resolved
        raise LogDirNotFoundError(
            f"log directory not found: {explicit} is invalid or contains no log files"
        )

    env_dir = os.environ.get(ENV_LOG_DIR, "")
    if env_dir:
        resolved = _resolve_log_dir(env_dir)
        if resolved is not None:
            return resolved
        raise LogDirNotFoundError(
            f"log directory not found: {ENV_LOG_DIR} environment variable points to invalid directory"
        )

    for candidate in default_log_dirs():
        resolved = _resolve_log_dir(candidate)
        if resolved is not None:
            return resolved
        logger.debug("Log directory candidate rejected: %s", candidate)

    raise LogDirNotFoundError("log directory not found")


def _mtime_or_none(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def list_log_files(directory: PathLike) -> List[Path]:
    """Return log files in ``directory`` sorted by modification time, oldest first."""

    stamped = []
    for path in _matching_files(Path(directory)):
        mtime = _mtime_or_none(path)
        if mtime is None:
            # vanished between glob and stat
            continue
        stamped.append((mtime, path))
    stamped.sort(key=lambda item: item[0])
    return [path for _, path in stamped]


def find_latest_log_file(directory: PathLike) -> Path:
    """Return the most recently modified log file in ``directory``."""

    files = list_log_files(directory)
    if not files:
        raise NoLogFilesError(f"no log files found in {directory}")
    return files[-1]


__all__ = [
    "ENV_LOG_DIR",
    "LOG_FILE_PATTERN",
    "default_log_dirs",
    "find_log_dir",
    "find_latest_log_file",
    "list_log_files",
]
