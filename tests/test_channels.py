"""Tests for the closable channels and select helper."""

from __future__ import annotations

import queue
import sys
import threading
import time
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from channels import CancelScope, Channel, ChannelClosed, Ticker, select


def test_rendezvous_send_waits_for_receiver():
    channel = Channel(0)
    delivered = threading.Event()

    def producer():
        channel.send("hello")
        delivered.set()

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()

    assert not delivered.wait(0.2)
    assert channel.receive(timeout=1) == "hello"
    assert delivered.wait(1)
    thread.join(1)


def test_cancelled_send_withdraws_item():
    channel = Channel(0)
    cancel = threading.Event()
    result = {}

    def producer():
        result["sent"] = channel.send("late", cancel=cancel)

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    time.sleep(0.1)
    cancel.set()
    thread.join(1)

    assert result["sent"] is False
    assert len(channel) == 0
    with pytest.raises(queue.Empty):
        channel.receive(timeout=0.1)


def test_try_send_drops_newest_when_full():
    channel = Channel(2)

    assert channel.try_send(1)
    assert channel.try_send(2)
    assert not channel.try_send(3)
    assert [channel.receive(timeout=0.1), channel.receive(timeout=0.1)] == [1, 2]


def test_close_drains_then_reports_closed():
    channel = Channel(4)
    channel.send("a")
    channel.send("b")
    channel.close()
    channel.close()

    assert list(channel) == ["a", "b"]
    with pytest.raises(ChannelClosed):
        channel.receive(timeout=0.1)
    with pytest.raises(ChannelClosed):
        channel.send("c")
    assert not channel.try_send("c")


def test_close_releases_blocked_receiver():
    channel = Channel(0)
    outcome = {}

    def consumer():
        try:
            channel.receive()
        except ChannelClosed:
            outcome["closed"] = True

    thread = threading.Thread(target=consumer, daemon=True)
    thread.start()
    time.sleep(0.1)
    channel.close()
    thread.join(1)

    assert outcome == {"closed": True}


def test_select_picks_ready_channel():
    idle = Channel(1)
    busy = Channel(1)
    busy.send("value")

    selected = select([idle, busy], timeout=1)

    assert selected.source is busy
    assert selected.value == "value"
    assert selected.ok


def test_select_reports_closed_channel():
    channel = Channel(0)
    channel.close()

    selected = select([channel], timeout=1)

    assert selected.source is channel
    assert selected.ok is False


def test_select_prefers_cancellation():
    channel = Channel(1)
    channel.send("ready")
    cancel = threading.Event()
    cancel.set()

    assert select([channel], cancel=cancel) is None
    assert len(channel) == 1


def test_select_wakes_on_send_from_other_thread():
    channel = Channel(0)
    threading.Timer(0.1, lambda: channel.send("ping")).start()

    selected = select([channel], timeout=2)

    assert selected is not None
    assert selected.value == "ping"


def test_select_times_out():
    assert select([Channel(0)], timeout=0.1) is None


def test_ticker_fires_after_interval():
    ticker = Ticker(0.05)

    assert ticker.poll()[0] is False
    selected = select([ticker], timeout=1)

    assert selected.source is ticker
    ticker.stop()
    time.sleep(0.06)
    assert ticker.poll()[0] is False


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Ticker(0)


def test_cancel_scope_follows_parent_only_downwards():
    parent = threading.Event()
    scope = CancelScope(parent)

    assert not scope.is_set()
    scope.set()
    assert scope.is_set()
    assert not parent.is_set()

    child = CancelScope(parent)
    parent.set()
    assert child.is_set()
    assert child.wait(0.1)
