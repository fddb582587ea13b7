import sys
from datetime import datetime
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from line_parser import parse_line
from models import EventType

PREFIX = "2024.01.15 23:59:59 Log        -  "


def test_player_join_with_id():
    event, err = parse_line(PREFIX + "[Behaviour] OnPlayerJoined TestUser (usr_1234abcd)")

    assert err is None
    assert event.type == EventType.PLAYER_JOIN
    assert event.player_name == "TestUser"
    assert event.player_id == "usr_1234abcd"
    assert event.timestamp == datetime(2024, 1, 15, 23, 59, 59)


def test_player_join_name_with_spaces():
    event, err = parse_line(PREFIX + "[Behaviour] OnPlayerJoined Some User Name")

    assert err is None
    assert event.player_name == "Some User Name"
    assert event.player_id == ""


def test_player_left():
    event, err = parse_line(PREFIX + "[Behaviour] OnPlayerLeft TestUser")

    assert err is None
    assert event.type == EventType.PLAYER_LEFT
    assert event.player_name == "TestUser"


def test_player_left_room_is_not_an_event():
    assert parse_line(PREFIX + "[Behaviour] OnPlayerLeftRoom") == (None, None)


def test_entering_room():
    event, err = parse_line(PREFIX + "[Behaviour] Entering Room: Test World")

    assert err is None
    assert event.type == EventType.WORLD_JOIN
    assert event.world_name == "Test World"


def test_joining_instance():
    event, err = parse_line(PREFIX + "[Behaviour] Joining wrld_abc-123:12345~region(us)")

    assert err is None
    assert event.type == EventType.WORLD_JOIN
    assert event.world_id == "wrld_abc-123"
    assert event.instance_id == "12345~region(us)"


@pytest.mark.parametrize(
    "line",
    [
        "some random text",
        "",
        PREFIX + "[Behaviour] Joining or Creating Room: Test World",
        PREFIX + "[Network] Something else happened",
    ],
)
def test_unrecognised_lines(line):
    assert parse_line(line) == (None, None)


def test_bad_timestamp_is_an_error():
    event, err = parse_line("2024.13.45 99:99:99 Log - [Behaviour] OnPlayerJoined TestUser")

    assert event is None
    assert isinstance(err, ValueError)


def test_missing_player_name_is_an_error():
    event, err = parse_line(PREFIX + "[Behaviour] OnPlayerJoined   ")

    assert event is None
    assert err is not None
