"""Batch parsing of log files that are not being followed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Union

from errors import AppError, ConfigError, NoLogFilesError, ParseError
from models import Event, TypeFilter, to_local_naive
from paths import find_log_dir, list_log_files
from pipeline import EventPipeline

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ParseOptions:
    """Filters for batch parsing. ``since`` is inclusive, ``until`` exclusive."""

    type_filter: TypeFilter = field(default_factory=TypeFilter)
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    include_raw_line: bool = False
    stop_on_error: bool = False

    def __post_init__(self):
        object.__setattr__(self, "since", to_local_naive(self.since))
        object.__setattr__(self, "until", to_local_naive(self.until))

    def validate(self) -> None:
        if self.since and self.until and self.until <= self.since:
            raise ConfigError("until must be after since")

    def pipeline(self) -> EventPipeline:
        return EventPipeline(
            type_filter=self.type_filter,
            include_raw_line=self.include_raw_line,
            since=self.since,
            stop_on_parse_error=self.stop_on_error,
            log=logger,
        )


def parse_file(
    path: PathLike,
    options: Optional[ParseOptions] = None,
    cancel: Optional[Any] = None,
) -> Iterator[Event]:
    """
    Lazily yield events from ``path``.

    The file is opened on first iteration. Malformed lines are skipped
    unless ``options.stop_on_error`` is set, in which case the
    :class:`ParseError` is raised. Iteration ends early once an event lies
    past ``options.until`` or ``cancel`` is set.
    """

    if not path:
        raise ConfigError("path required")
    options = options or ParseOptions()
    options.validate()
    pipeline = options.pipeline()

    with open(path, "r", encoding="utf-8", errors="replace", newline="") as handle:
        for raw in handle:
            if cancel is not None and cancel.is_set():
                return
            line = raw.rstrip("\n")
            if line.endswith("\r"):
                line = line[:-1]
            try:
                event = pipeline.build(line)
            except ParseError:
                if options.stop_on_error:
                    raise
                logger.debug("Skipping malformed line in %s: %r", path, line)
                continue
            if event is None:
                continue
            if options.until is not None and event.timestamp >= options.until:
                return
            yield event


def parse_file_all(
    path: PathLike,
    options: Optional[ParseOptions] = None,
    cancel: Optional[Any] = None,
) -> List[Event]:
    """Collect :func:`parse_file` into a list."""

    return list(parse_file(path, options, cancel))


def parse_dir(
    log_dir: Optional[PathLike] = None,
    paths: Optional[Sequence[PathLike]] = None,
    options: Optional[ParseOptions] = None,
    cancel: Optional[Any] = None,
) -> Iterator[Event]:
    """
    Yield events from every log file in chronological order.

    ``paths`` overrides directory discovery and is parsed in the given
    order. A file that cannot be read is skipped unless
    ``options.stop_on_error`` is set.
    """

    options = options or ParseOptions()
    files: Iterable[PathLike]
    if paths:
        files = list(paths)
    else:
        directory = find_log_dir(log_dir)
        files = list_log_files(directory)
    if not files:
        raise NoLogFilesError("no log files found")

    for path in files:
        if cancel is not None and cancel.is_set():
            return
        try:
            yield from parse_file(path, options, cancel)
        except (OSError, AppError) as exc:
            if options.stop_on_error:
                raise
            logger.warning("Skipping %s: %s", path, exc)


__all__ = ["ParseOptions", "parse_dir", "parse_file", "parse_file_all"]
