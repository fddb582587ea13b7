"""Tests for building WatchConfig from CLI and YAML input."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config_loader import build_config, load_config_file, normalise_event_types, parse_timestamp
from errors import ConfigError
from models import DEFAULT_MAX_REPLAY_LAST_N, EventType, ReplayMode, WatchConfig


def test_defaults():
    config = build_config({})

    assert config.log_dir == ""
    assert config.poll_interval == WatchConfig.DEFAULT_POLL_INTERVAL
    assert config.replay.mode is ReplayMode.NONE
    assert config.max_replay_lines == DEFAULT_MAX_REPLAY_LAST_N
    assert not config.include_raw_line
    assert not config.stop_on_parse_error


def test_full_mapping():
    config = build_config(
        {
            "log_dir": " /logs ",
            "poll_interval": "0.5",
            "include_raw_line": "yes",
            "include_types": "player_join,PLAYER_LEFT",
            "replay": {"mode": "last_n", "last_n": "25"},
            "max_replay_lines": 100,
            "stop_on_parse_error": True,
        }
    )

    assert config.log_dir == "/logs"
    assert config.poll_interval == 0.5
    assert config.include_raw_line
    assert config.type_filter.include == {EventType.PLAYER_JOIN, EventType.PLAYER_LEFT}
    assert config.replay.last_n == 25
    assert config.max_replay_lines == 100
    assert config.stop_on_parse_error


@pytest.mark.parametrize(
    "raw",
    [
        {"unexpected": 1},
        {"include_types": ["player_join"], "exclude_types": ["player_join"]},
        {"include_types": ["nope"]},
        {"poll_interval": "soon"},
        {"poll_interval": -1},
        {"replay": "last_n"},
        {"replay": {"mode": "sometimes"}},
        {"replay": {"mode": "last_n"}},
        {"replay": {"mode": "last_n", "last_n": 200}, "max_replay_lines": 100},
        {"replay": {"mode": "since_time"}},
        {"replay": {"mode": "since_time", "since": "yesterday"}},
    ],
)
def test_invalid_inputs(raw):
    with pytest.raises(ConfigError):
        build_config(raw)


def test_unlimited_replay_ceiling():
    config = build_config({"replay": {"mode": "last_n", "last_n": 50000}, "max_replay_lines": -1})

    assert config.replay.last_n == 50000


def test_parse_timestamp_normalises_to_local_naive():
    utc = parse_timestamp("2024-01-15T12:00:00Z", "since")
    expected = datetime(2024, 1, 15, 12, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)

    assert utc == expected
    assert parse_timestamp("2024-01-15T12:00:00", "since") == datetime(2024, 1, 15, 12)
    assert parse_timestamp("", "since") is None


def test_normalise_event_types_dedupes_in_order():
    assert normalise_event_types(["player_left,world_join", "PLAYER_LEFT", ""]) == [
        EventType.PLAYER_LEFT,
        EventType.WORLD_JOIN,
    ]


def test_load_config_file(tmp_path):
    path = tmp_path / "watch.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "log_dir": str(tmp_path),
                "exclude_types": ["world_join"],
                "replay": {"mode": "since_time", "since": "2024-01-15T10:00:00"},
            }
        ),
        encoding="utf-8",
    )

    config = build_config(load_config_file(path))

    assert config.replay.since == datetime(2024, 1, 15, 10)
    assert config.type_filter.exclude == {EventType.WORLD_JOIN}


def test_load_config_file_errors(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    broken = tmp_path / "broken.yaml"
    broken.write_text("replay: [unclosed\n", encoding="utf-8")

    assert load_config_file(empty) == {}
    with pytest.raises(ConfigError):
        load_config_file(listing)
    with pytest.raises(ConfigError):
        load_config_file(broken)
    with pytest.raises(ConfigError):
        load_config_file(tmp_path / "missing.yaml")
