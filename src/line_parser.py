"""Turn a single VRChat log line into an Event."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional, Tuple

from models import Event, EventType

TIMESTAMP_FORMAT = "%Y.%m.%d %H:%M:%S"

_LINE_RE = re.compile(r"^(?P<ts>\S+ \S+)\s+\S+\s+-\s+(?P<message>.*)$")
_PLAYER_RE = re.compile(r"^(?P<name>.*?)(?:\s+\((?P<id>usr_[^)]*)\))?\s*$")

_PLAYER_JOINED = "[Behaviour] OnPlayerJoined"
_PLAYER_LEFT = "[Behaviour] OnPlayerLeft"
_ENTERING_ROOM = "[Behaviour] Entering Room:"
_JOINING = "[Behaviour] Joining "

ParseResult = Tuple[Optional[Event], Optional[Exception]]


def _parse_timestamp(text: str) -> datetime:
    return datetime.strptime(text, TIMESTAMP_FORMAT)


def _player_event(event_type: EventType, timestamp: datetime, rest: str) -> Event:
    match = _PLAYER_RE.match(rest.strip())
    name = match.group("name").strip() if match else ""
    if not name:
        raise ValueError("missing player name")
    return Event(
        type=event_type,
        timestamp=timestamp,
        player_name=name,
        player_id=(match.group("id") or "") if match else "",
    )


def _joining_event(timestamp: datetime, rest: str) -> Optional[Event]:
    target = rest.strip()
    if not target.startswith("wrld_"):
        # "Joining or Creating Room", "Joining friend", ...
        return None
    world_id, _, instance_id = target.partition(":")
    return Event(
        type=EventType.WORLD_JOIN,
        timestamp=timestamp,
        world_id=world_id,
        instance_id=instance_id,
    )


def parse_line(line: str) -> ParseResult:
    """
    Parse one log line.

    Returns ``(event, None)`` for a recognised event, ``(None, None)`` for a
    line without a known marker and ``(None, error)`` when a known marker is
    present but the line is malformed.
    """

    if "[Behaviour]" not in line:
        return None, None

    if _PLAYER_JOINED in line:
        marker, event_type = _PLAYER_JOINED, EventType.PLAYER_JOIN
    elif _PLAYER_LEFT in line:
        marker, event_type = _PLAYER_LEFT, EventType.PLAYER_LEFT
        if f"{_PLAYER_LEFT}Room" in line:
            return None, None
    elif _ENTERING_ROOM in line:
        marker, event_type = _ENTERING_ROOM, EventType.WORLD_JOIN
    elif _JOINING in line:
        marker, event_type = _JOINING, None
    else:
        return None, None

    match = _LINE_RE.match(line.rstrip("\r\n"))
    if match is None:
        return None, ValueError("line does not start with a timestamp and level")
    try:
        timestamp = _parse_timestamp(match.group("ts"))
    except ValueError as exc:
        return None, exc

    message = match.group("message")
    rest = message.split(marker, 1)[1] if marker in message else ""

    try:
        if event_type is None:
            return _joining_event(timestamp, rest), None
        if event_type == EventType.WORLD_JOIN:
            world_name = rest.strip()
            if not world_name:
                raise ValueError("missing world name")
            return Event(type=EventType.WORLD_JOIN, timestamp=timestamp, world_name=world_name), None
        return _player_event(event_type, timestamp, rest), None
    except ValueError as exc:
        return None, exc


__all__ = ["TIMESTAMP_FORMAT", "parse_line"]
