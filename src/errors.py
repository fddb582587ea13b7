# src/errors.py

from enum import Enum
from typing import Optional


class AppError(Exception):
    """
    Base exception for the VRChat log watcher.
    All other exceptions should inherit from this.
    """
    def __init__(self, message: str, *, underlying: Optional[BaseException] = None):
        super().__init__(message)
        self.underlying = underlying

    def __str__(self):
        if self.underlying:
            return f"{self.args[0]} (caused by {self.underlying})"
        return self.args[0]


class ConfigError(AppError):
    """
    Raised when watch or parse options are invalid (bad replay bounds,
    negative poll interval, missing replay timestamp, unknown event type).
    """


class LogDirNotFoundError(AppError):
    """
    Raised when the log directory cannot be found or holds no log files.
    """


class NoLogFilesError(AppError):
    """
    Raised when no output_log_*.txt files exist in the log directory.
    """


class WatcherClosedError(AppError):
    """
    Raised by WatchEngine.start() once the engine has been stopped.
    """

    def __init__(self, message: str = "watcher is closed", **kwargs):
        super().__init__(message, **kwargs)


class AlreadyWatchingError(AppError):
    """
    Raised by WatchEngine.start() when it has already been started.
    """

    def __init__(self, message: str = "watch already started", **kwargs):
        super().__init__(message, **kwargs)


class ParseError(AppError):
    """
    Raised (or reported) when a line carries a known event marker but is malformed.
    Keeps the offending line on ``line``.
    """

    def __init__(self, line: str, underlying: Optional[BaseException] = None):
        super().__init__(f"parse error: {line!r}", underlying=underlying)
        self.line = line


class WatchOp(str, Enum):
    """Operation that failed inside the watch loop."""

    FIND_LATEST = "find_latest"
    TAIL = "tail"
    REPLAY = "replay"
    ROTATION = "rotation"


class WatchError(AppError):
    """
    Reported on the error channel when a watch operation fails.
    ``op`` names the operation, ``path`` the file involved (if any).
    """

    def __init__(
        self,
        op: WatchOp,
        *,
        path: Optional[str] = None,
        underlying: Optional[BaseException] = None,
    ):
        op = WatchOp(op)
        message = f"watch {op.value}"
        if path:
            message = f"{message} {path}"
        super().__init__(message, underlying=underlying)
        self.op = op
        self.path = path
