"""Tests for the polling file tailer."""

from __future__ import annotations

import os
import queue
import sys
import threading
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from channels import ChannelClosed
from log_watcher import LineSource

POLL = 0.02


def _receive(source: LineSource, count: int, timeout: float = 3.0):
    lines = []
    for _ in range(count):
        lines.append(source.lines.receive(timeout=timeout))
    return lines


def _append(path: Path, text: str) -> None:
    with open(path, "ab") as handle:
        handle.write(text.encode("utf-8"))


def test_reads_existing_content_from_start(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"first\r\nsecond\n")

    with LineSource(log, from_start=True, poll_interval=POLL) as source:
        assert _receive(source, 2) == ["first", "second"]


def test_tails_from_end_and_waits_for_complete_lines(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"old line\n")

    with LineSource(log, poll_interval=POLL) as source:
        _append(log, "new ")
        with pytest.raises(queue.Empty):
            source.lines.receive(timeout=0.2)
        _append(log, "line\n")
        assert _receive(source, 1) == ["new line"]


def test_reopens_after_truncation(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"aaaa\nbbbb\n")

    with LineSource(log, from_start=True, poll_interval=POLL) as source:
        assert _receive(source, 2) == ["aaaa", "bbbb"]
        log.write_bytes(b"c\n")
        assert _receive(source, 1) == ["c"]
        assert source.generation == 1


def test_reopens_after_replacement(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"original\n")

    with LineSource(log, from_start=True, poll_interval=POLL) as source:
        assert _receive(source, 1) == ["original"]
        replacement = tmp_path / "replacement.txt"
        replacement.write_bytes(b"replaced one\nreplaced two\n")
        os.replace(replacement, log)
        assert _receive(source, 2) == ["replaced one", "replaced two"]


def test_missing_file_fails_on_start(tmp_path):
    source = LineSource(tmp_path / "output_log_missing.txt", poll_interval=POLL)

    with pytest.raises(FileNotFoundError):
        source.start()


def test_stop_closes_both_channels(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"")
    source = LineSource(log, poll_interval=POLL).start()

    source.stop()
    source.stop()

    assert source.lines.closed
    assert source.errors.closed
    with pytest.raises(ChannelClosed):
        source.lines.receive(timeout=0.1)


def test_parent_cancel_stops_read_loop(tmp_path):
    log = tmp_path / "output_log_1.txt"
    log.write_bytes(b"pending\n")
    cancel = threading.Event()
    source = LineSource(log, from_start=True, poll_interval=POLL, cancel=cancel).start()

    cancel.set()

    with pytest.raises(ChannelClosed):
        for _ in range(100):
            source.lines.receive(timeout=0.1)
    source.stop()
