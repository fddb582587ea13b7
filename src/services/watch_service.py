"""Service that follows the VRChat log directory and streams parsed events."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from channels import CancelScope, Channel, select
from errors import (
    AlreadyWatchingError,
    AppError,
    ConfigError,
    WatchError,
    WatchOp,
    WatcherClosedError,
)
from log_watcher import ERROR_BUFFER, LineSource
from models import ReplayMode, WatchConfig
from paths import find_latest_log_file, find_log_dir
from pipeline import EventPipeline, report_error
from replay import read_last_n_lines
from rotation import RotationMonitor

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class EngineState(str, Enum):
    CREATED = "created"
    WATCHING = "watching"
    CLOSED = "closed"


class WatchEngine:
    """
    Replays, tails and follows rotation of the newest log file.

    Construction validates the config and resolves the log directory; no
    thread is started until :meth:`start`. The background thread sequences
    replay, live tailing and rotation handling and is the only writer of
    the two returned channels.
    """

    def __init__(
        self,
        config: Optional[WatchConfig] = None,
        *,
        line_source_factory: Optional[Callable[..., LineSource]] = None,
        tail_poll_interval: float = 0.1,
    ) -> None:
        config = config or WatchConfig()
        try:
            config.validate()
        except ConfigError as exc:
            raise ConfigError("invalid options", underlying=exc) from exc

        self.config = config
        self.log_dir: Path = find_log_dir(config.log_dir)
        self._log = config.logger or logger
        self._line_source_factory = line_source_factory or LineSource
        self._tail_poll_interval = tail_poll_interval
        self._pipeline = EventPipeline(
            type_filter=config.type_filter,
            include_raw_line=config.include_raw_line,
            since=config.replay.since if config.replay.mode == ReplayMode.SINCE_TIME else None,
            stop_on_parse_error=config.stop_on_parse_error,
            log=self._log,
        )

        self._lock = threading.Lock()
        self._state = EngineState.CREATED
        self._cancel: Optional[CancelScope] = None
        self._done: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

        self._log.debug("WatchEngine initialised for %s", self.log_dir)

    # Public API -----------------------------------------------------------------
    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    def start(self, cancel: Optional[Any] = None) -> Tuple[Channel, Channel]:
        """
        Spawn the watch thread and return ``(events, errors)``.

        Both channels are closed when ``cancel`` (any object with
        ``is_set()``) fires, :meth:`stop` is called, or the run ends on a
        fatal error. Can only be called once.
        """

        with self._lock:
            if self._state == EngineState.CLOSED:
                raise WatcherClosedError()
            if self._state == EngineState.WATCHING:
                raise AlreadyWatchingError()
            self._state = EngineState.WATCHING

            self._cancel = CancelScope(cancel)
            self._done = threading.Event()
            events = Channel(0, name="events")
            errors = Channel(ERROR_BUFFER, name="errors")
            self._thread = threading.Thread(
                target=self._run,
                args=(events, errors),
                name="vrclog-watch",
                daemon=True,
            )
            try:
                self._thread.start()
            except Exception:
                self._state = EngineState.CREATED
                self._cancel = self._done = self._thread = None
                raise

        self._log.info("Started watching %s", self.log_dir)
        return events, errors

    def stop(self) -> None:
        """
        Cancel the watch thread and block until it has exited.
        Safe to call multiple times and before :meth:`start`.
        """

        with self._lock:
            if self._state == EngineState.CLOSED:
                return
            self._state = EngineState.CLOSED
            if self._cancel is not None:
                self._cancel.set()
            done = self._done

        if done is not None:
            done.wait()
        self._log.info("Stopped watching %s", self.log_dir)

    close = stop

    def __enter__(self) -> "WatchEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # Background thread ----------------------------------------------------------
    def _run(self, events: Channel, errors: Channel) -> None:
        try:
            self._watch(events, errors)
        except Exception as exc:  # pragma: no cover - surfaced on the error channel
            self._log.exception("Watch loop failed")
            report_error(errors, exc, self._cancel, log=self._log)
        finally:
            errors.close()
            events.close()
            self._done.set()

    def _report(self, errors: Channel, exc: BaseException) -> None:
        self._log.debug("Reporting error: %s", exc)
        report_error(errors, exc, self._cancel, log=self._log)

    def _open_source(self, path: Path, from_start: bool) -> LineSource:
        source = self._line_source_factory(
            path,
            from_start=from_start,
            poll_interval=self._tail_poll_interval,
            cancel=self._cancel,
            log=self._log,
        )
        return source.start()

    def _replay_last_n(self, path: Path, events: Channel, errors: Channel) -> None:
        n = self.config.replay.last_n
        self._log.debug("Replaying last %d lines of %s", n, path)
        for line in read_last_n_lines(path, n):
            if self._cancel.is_set():
                return
            if not self._pipeline.process(line, events, errors, self._cancel):
                return

    def _watch(self, events: Channel, errors: Channel) -> None:
        cancel = self._cancel
        replay = self.config.replay

        try:
            current = find_latest_log_file(self.log_dir)
        except (AppError, OSError) as exc:
            self._report(errors, WatchError(WatchOp.FIND_LATEST, underlying=exc))
            return
        self._log.debug("Found latest log file %s", current)

        from_start = replay.reads_from_start
        if replay.mode == ReplayMode.LAST_N and replay.last_n > 0:
            try:
                self._replay_last_n(current, events, errors)
            except OSError as exc:
                self._report(errors, WatchError(WatchOp.REPLAY, path=str(current), underlying=exc))
            from_start = False
            if cancel.is_set():
                return

        try:
            source = self._open_source(current, from_start)
        except (AppError, OSError) as exc:
            self._report(errors, WatchError(WatchOp.TAIL, path=str(current), underlying=exc))
            return

        monitor = RotationMonitor(
            self.log_dir, current, self.config.effective_poll_interval, log=self._log
        )
        try:
            while True:
                selected = select([source.lines, source.errors, monitor.ticker], cancel=cancel)
                if selected is None:
                    return

                if selected.source is source.lines:
                    if not selected.ok:
                        return
                    if not self._pipeline.process(selected.value, events, errors, cancel):
                        return

                elif selected.source is source.errors:
                    if not selected.ok:
                        return
                    self._report(errors, selected.value)

                else:
                    try:
                        latest = monitor.check()
                    except WatchError as exc:
                        self._report(errors, exc)
                        continue
                    if latest is None:
                        continue

                    source.stop()
                    # A rotated-to file is always read from its start.
                    try:
                        source = self._open_source(latest, from_start=True)
                    except (AppError, OSError) as exc:
                        self._report(errors, WatchError(WatchOp.TAIL, path=str(latest), underlying=exc))
                        return
                    monitor.advance(latest)
        finally:
            monitor.stop()
            source.stop()


def watch(config: Optional[WatchConfig] = None, cancel: Optional[Any] = None):
    """Create a :class:`WatchEngine` and start it. Returns ``(engine, events, errors)``."""

    engine = WatchEngine(config)
    events, errors = engine.start(cancel)
    return engine, events, errors


__all__ = ["EngineState", "WatchEngine", "watch"]
