"""Service layer for watching and parsing VRChat logs."""

from .parse_service import ParseOptions, parse_dir, parse_file, parse_file_all
from .watch_service import EngineState, WatchEngine, watch

__all__ = [
    "EngineState",
    "ParseOptions",
    "WatchEngine",
    "parse_dir",
    "parse_file",
    "parse_file_all",
    "watch",
]
