"""Closable message queues and a multi-way wait for the watch threads.

A :class:`Channel` with capacity 0 is a rendezvous: ``send`` returns only
once a receiver has taken the item. Every blocking call takes an optional
cancellation flag (anything with ``is_set()``) and gives up when it is set.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from collections import deque
from typing import Any, Iterator, List, NamedTuple, Optional, Sequence

# Upper bound on how long any wait goes without re-checking cancellation.
WAIT_SLICE = 0.05


class ChannelClosed(Exception):
    """Raised when sending on, or receiving from a drained, closed channel."""


class CancelScope:
    """
    A ``threading.Event``-like flag that also reads as set once its parent is set.
    Setting the scope never touches the parent.
    """

    def __init__(self, parent: Optional[Any] = None) -> None:
        self._event = threading.Event()
        self._parent = parent

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.is_set():
            if deadline is None:
                slice_ = WAIT_SLICE
            else:
                slice_ = min(WAIT_SLICE, deadline - time.monotonic())
                if slice_ <= 0:
                    return False
            self._event.wait(slice_)
        return True


def _cancelled(cancel: Optional[Any]) -> bool:
    return cancel is not None and cancel.is_set()


class Channel:
    """Closable FIFO between threads with explicit end-of-stream."""

    def __init__(self, capacity: int = 0, name: str = "") -> None:
        if capacity < 0:
            raise ValueError("channel capacity must be non-negative")
        self.capacity = capacity
        self.name = name
        self._items: deque = deque()
        self._closed = False
        self._cond = threading.Condition()
        self._sent = 0
        self._taken = 0
        self._waiters: List[threading.Event] = []

    def __repr__(self) -> str:
        return f"Channel(name={self.name!r}, capacity={self.capacity}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def _wake(self) -> None:
        self._cond.notify_all()
        for waiter in self._waiters:
            waiter.set()

    def send(self, item: Any, cancel: Optional[Any] = None) -> bool:
        """
        Deliver ``item``, blocking for room (or, unbuffered, for a receiver).
        Returns False if ``cancel`` fired first; the item is then withdrawn.
        """

        with self._cond:
            while True:
                if self._closed:
                    raise ChannelClosed(f"send on closed channel {self.name}")
                if _cancelled(cancel):
                    return False
                if len(self._items) < max(self.capacity, 1):
                    break
                self._cond.wait(WAIT_SLICE)

            self._items.append(item)
            self._sent += 1
            ticket = self._sent
            self._wake()
            if self.capacity > 0:
                return True

            while self._taken < ticket and not self._closed:
                if _cancelled(cancel):
                    # single slot, so the pending item is ours
                    self._items.popleft()
                    self._sent -= 1
                    self._wake()
                    return False
                self._cond.wait(WAIT_SLICE)
            return True

    def try_send(self, item: Any) -> bool:
        """Non-blocking send; drops ``item`` (returns False) when full or closed."""

        with self._cond:
            if self._closed or len(self._items) >= self.capacity:
                return False
            self._items.append(item)
            self._sent += 1
            self._wake()
            return True

    def _take(self) -> Any:
        item = self._items.popleft()
        self._taken += 1
        self._wake()
        return item

    def receive(self, timeout: Optional[float] = None, cancel: Optional[Any] = None) -> Any:
        """
        Take the next item. Raises :class:`ChannelClosed` once closed and
        drained, ``queue.Empty`` on timeout or cancellation.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._items:
                if self._closed:
                    raise ChannelClosed(f"channel {self.name} closed")
                if _cancelled(cancel):
                    raise queue.Empty
                slice_ = WAIT_SLICE
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise queue.Empty
                    slice_ = min(slice_, remaining)
                self._cond.wait(slice_)
            return self._take()

    def poll(self):
        """Return ``(ready, item, ok)`` without blocking."""

        with self._cond:
            if self._items:
                return True, self._take(), True
            if self._closed:
                return True, None, False
            return False, None, True

    def close(self) -> None:
        """Close the channel. Buffered items stay receivable. Idempotent."""

        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._wake()

    def __iter__(self) -> Iterator[Any]:
        while True:
            try:
                yield self.receive()
            except ChannelClosed:
                return

    def _register(self, waiter: threading.Event) -> None:
        with self._cond:
            self._waiters.append(waiter)

    def _unregister(self, waiter: threading.Event) -> None:
        with self._cond:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                pass


class Ticker:
    """Becomes ready every ``interval`` seconds; missed ticks are coalesced."""

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("ticker interval must be positive")
        self.interval = interval
        self._next = time.monotonic() + interval
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    def poll(self):
        now = time.monotonic()
        if self._stopped or now < self._next:
            return False, None, True
        self._next = now + self.interval
        return True, now, True

    def remaining(self) -> float:
        return max(0.0, self._next - time.monotonic())

    def _register(self, waiter: threading.Event) -> None:
        pass

    def _unregister(self, waiter: threading.Event) -> None:
        pass


class Selected(NamedTuple):
    source: Any
    value: Any
    ok: bool


def select(
    sources: Sequence[Any],
    cancel: Optional[Any] = None,
    timeout: Optional[float] = None,
) -> Optional[Selected]:
    """
    Wait until one of ``sources`` (channels or tickers) is ready.

    Returns the ready source with its value; ``ok`` is False for a closed,
    drained channel. Returns None when ``cancel`` is set (checked before any
    source on every wake-up) or ``timeout`` elapses. Ready sources are tried
    in random order so a busy channel cannot starve the others.
    """

    deadline = None if timeout is None else time.monotonic() + timeout
    waiter = threading.Event()
    order = list(sources)
    for source in order:
        source._register(waiter)
    try:
        while True:
            if _cancelled(cancel):
                return None
            waiter.clear()
            random.shuffle(order)
            for source in order:
                ready, value, ok = source.poll()
                if ready:
                    return Selected(source, value, ok)

            slice_ = WAIT_SLICE
            for source in order:
                if isinstance(source, Ticker):
                    slice_ = min(slice_, source.remaining())
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                slice_ = min(slice_, remaining)
            waiter.wait(slice_)
    finally:
        for source in order:
            source._unregister(waiter)


__all__ = [
    "CancelScope",
    "Channel",
    "ChannelClosed",
    "Selected",
    "Ticker",
    "WAIT_SLICE",
    "select",
]
