# src/log_watcher.py
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional
import logging

from channels import CancelScope, Channel, ChannelClosed
from errors import WatchError, WatchOp

logger = logging.getLogger(__name__)

# Bounded so a burst of I/O errors never blocks line delivery.
ERROR_BUFFER = 16
READ_SIZE = 64 * 1024


@dataclass
class TailCursor:
    """Open handle plus read position for the file being tailed."""
    handle: BinaryIO
    offset: int
    inode: int
    generation: int = 0
    pending: bytes = b""
    pending_generation: int = 0


class LineSource:
    """
    Tails a file and publishes each complete line on `lines`.

    Follows growth by polling and reopens from the start when the file is
    truncated or replaced by a new inode at the same path. I/O errors go to
    `errors` (capacity ERROR_BUFFER, newest dropped when full).
    """
    def __init__(
        self,
        path: Path,
        from_start: bool = False,
        poll_interval: float = 0.1,
        cancel=None,
        log: Optional[logging.Logger] = None,
    ):
        self.path = Path(path)
        self.from_start = from_start
        self.poll = poll_interval
        self.lines = Channel(0, name=f"lines:{self.path.name}")
        self.errors = Channel(ERROR_BUFFER, name=f"errors:{self.path.name}")
        self._log = log or logger
        self._stop = CancelScope(cancel)
        self._lock = threading.Lock()
        self._stopped = False
        self._thread: Optional[threading.Thread] = None
        self._cursor: Optional[TailCursor] = None

    @property
    def generation(self) -> int:
        return self._cursor.generation if self._cursor else 0

    def start(self) -> "LineSource":
        """Open the file (it must exist) and start the read loop."""
        with self._lock:
            if self._stopped:
                raise WatchError(WatchOp.TAIL, path=str(self.path), underlying=RuntimeError("source stopped"))
            if self._thread is not None:
                return self
            self._cursor = self._open(at_end=not self.from_start)
            self._thread = threading.Thread(
                target=self._run, name=f"tail-{self.path.name}", daemon=True
            )
            self._thread.start()
        self._log.debug("Started tailing %s (from_start=%s)", self.path, self.from_start)
        return self

    def stop(self) -> None:
        """Stop the read loop and wait for it to exit. Safe to call repeatedly."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread
        self._stop.set()
        if thread is not None:
            thread.join()
        else:
            self._close_streams()
        self._log.debug("Stopped tailing %s", self.path)

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc_info):
        self.stop()

    def _open(self, at_end: bool) -> TailCursor:
        handle = open(self.path, 'rb')
        try:
            st = os.fstat(handle.fileno())
            offset = handle.seek(0, os.SEEK_END) if at_end else 0
        except OSError:
            handle.close()
            raise
        return TailCursor(handle=handle, offset=offset, inode=st.st_ino)

    def _reopen(self, cursor: TailCursor) -> TailCursor:
        fresh = self._open(at_end=False)
        fresh.generation = cursor.generation + 1
        cursor.handle.close()
        self._log.debug(
            "Reopened %s (generation %d)", self.path, fresh.generation
        )
        return fresh

    def _report(self, exc: BaseException) -> None:
        if self._stop.is_set():
            return
        err = exc if isinstance(exc, WatchError) else WatchError(
            WatchOp.TAIL, path=str(self.path), underlying=exc
        )
        if not self.errors.try_send(err):
            self._log.debug("Error buffer full, dropped: %s", err)

    def _split(self, cursor: TailCursor, chunk: bytes) -> List[str]:
        if cursor.pending_generation != cursor.generation:
            # bytes left over from before a reopen are stale
            cursor.pending = b""
            cursor.pending_generation = cursor.generation
        data = cursor.pending + chunk
        parts = data.split(b"\n")
        cursor.pending = parts.pop()
        return [
            (part[:-1] if part.endswith(b"\r") else part).decode('utf-8', errors='replace')
            for part in parts
        ]

    def _needs_reopen(self, cursor: TailCursor) -> bool:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            # rotated away; wait for it to reappear
            return False
        return st.st_ino != cursor.inode or st.st_size < cursor.offset

    def _run(self):
        cursor = self._cursor
        try:
            while not self._stop.is_set():
                try:
                    chunk = cursor.handle.read(READ_SIZE)
                except OSError as e:
                    self._report(e)
                    self._stop.wait(self.poll)
                    continue

                if chunk:
                    cursor.offset += len(chunk)
                    for line in self._split(cursor, chunk):
                        if not self.lines.send(line, cancel=self._stop):
                            return
                    continue

                if self._stop.wait(self.poll):
                    break
                try:
                    if self._needs_reopen(cursor):
                        cursor = self._cursor = self._reopen(cursor)
                except OSError as e:
                    self._report(e)
        except ChannelClosed:
            pass
        except Exception as e:
            self._log.exception("Error tailing log file %s", self.path)
            self._report(e)
        finally:
            try:
                cursor.handle.close()
            except OSError:
                pass
            self._close_streams()

    def _close_streams(self):
        self.errors.close()
        self.lines.close()
