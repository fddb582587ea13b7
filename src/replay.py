"""Read the last N lines of a log file without scanning all of it."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096


def extract_lines(buffer: bytes, n: int, *, partial_head: bool = False) -> List[str]:
    """
    Split ``buffer`` into lines and keep the last ``n`` non-blank ones, oldest first.

    A trailing ``\\r`` is stripped from every line and blank lines are
    skipped. With ``partial_head`` the first segment is discarded because it
    may start mid-line.
    """

    if n <= 0 or not buffer:
        return []
    segments = buffer.split(b"\n")
    if partial_head:
        segments.pop(0)
    lines = []
    for segment in segments:
        if segment.endswith(b"\r"):
            segment = segment[:-1]
        if segment:
            lines.append(segment.decode("utf-8", errors="replace"))
    return lines[-n:]


def read_last_n_lines(
    path: Union[str, Path],
    n: int,
    *,
    chunk_size: int = CHUNK_SIZE,
) -> List[str]:
    """
    Return the last ``n`` non-blank lines of ``path`` in file order.

    Chunks are read backwards from the end of the file until enough lines
    have been seen or the start of the file is reached. An empty file
    yields an empty list.
    """

    if n <= 0:
        return []

    with open(path, "rb") as handle:
        handle.seek(0, os.SEEK_END)
        size = handle.tell()
        if size == 0:
            return []

        chunks: List[bytes] = []
        offset = size
        newlines = 0
        trailing_newline = False
        lines: List[str] = []

        while offset > 0:
            read_size = min(chunk_size, offset)
            offset -= read_size
            handle.seek(offset)
            chunk = handle.read(read_size)
            if not chunks:
                trailing_newline = chunk.endswith(b"\n")
            chunks.append(chunk)
            newlines += chunk.count(b"\n")

            # blank lines make this an upper bound on what extract_lines keeps
            complete = newlines - (1 if trailing_newline else 0)
            if complete < n and offset > 0:
                continue
            lines = extract_lines(b"".join(reversed(chunks)), n, partial_head=offset > 0)
            if len(lines) >= n:
                break

    logger.debug("Read %d of %d requested lines from %s", len(lines), n, path)
    return lines


__all__ = ["CHUNK_SIZE", "extract_lines", "read_last_n_lines"]
