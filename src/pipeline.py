"""Raw line to delivered Event: parse, filter, attach the raw line, send."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from channels import Channel
from errors import ParseError
from models import Event, TypeFilter, to_local_naive
from line_parser import ParseResult, parse_line

logger = logging.getLogger(__name__)

Parser = Callable[[str], ParseResult]


class EventPipeline:
    """
    Converts lines into events and hands them to the event channel.

    ``build`` is the pure part shared with batch parsing; ``process`` adds
    delivery and error reporting for the watch loop.
    """

    def __init__(
        self,
        *,
        type_filter: Optional[TypeFilter] = None,
        include_raw_line: bool = False,
        since: Optional[datetime] = None,
        stop_on_parse_error: bool = False,
        parse: Parser = parse_line,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.type_filter = type_filter or TypeFilter()
        self.include_raw_line = include_raw_line
        self.since = to_local_naive(since)
        self.stop_on_parse_error = stop_on_parse_error
        self._parse = parse
        self._log = log or logger

    def build(self, line: str) -> Optional[Event]:
        """
        Parse and filter one line. Returns None for unrecognised or filtered
        lines; raises :class:`ParseError` for malformed ones.
        """

        event, error = self._parse(line)
        if error is not None:
            raise ParseError(line, underlying=error)
        if event is None:
            return None

        if self.since is not None and event.timestamp < self.since:
            return None
        if not self.type_filter.allows(event.type):
            return None
        if self.include_raw_line:
            event = event.with_raw_line(line)
        return event

    def process(
        self,
        line: str,
        events: Channel,
        errors: Channel,
        cancel: Optional[Any] = None,
    ) -> bool:
        """
        Run ``line`` through :meth:`build` and deliver the result.

        Returns False when the current pass should end: cancellation fired
        during the send, or a parse error occurred in stop-on-error mode.
        """

        try:
            event = self.build(line)
        except ParseError as exc:
            report_error(errors, exc, cancel, log=self._log)
            return not self.stop_on_parse_error

        if event is None:
            return True
        return events.send(event, cancel=cancel)


def report_error(
    errors: Channel,
    exc: BaseException,
    cancel: Optional[Any] = None,
    *,
    log: Optional[logging.Logger] = None,
) -> None:
    """Non-blocking error delivery; dropped when cancelled or the buffer is full."""

    log = log or logger
    if cancel is not None and cancel.is_set():
        return
    if not errors.try_send(exc):
        log.debug("Error channel full, dropped: %s", exc)


__all__ = ["EventPipeline", "Parser", "report_error"]
