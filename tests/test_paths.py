"""Tests for log directory discovery and log file listing."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import paths
from errors import LogDirNotFoundError, NoLogFilesError
from paths import ENV_LOG_DIR, default_log_dirs, find_latest_log_file, find_log_dir, list_log_files


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for name in (ENV_LOG_DIR, "LOCALAPPDATA", "USERPROFILE"):
        monkeypatch.delenv(name, raising=False)


def _log(directory: Path, name: str, mtime: float) -> Path:
    path = directory / name
    path.write_text("x\n", encoding="utf-8")
    os.utime(path, (mtime, mtime))
    return path


def test_explicit_directory_wins(tmp_path, monkeypatch):
    explicit = tmp_path / "explicit"
    explicit.mkdir()
    _log(explicit, "output_log_a.txt", 1000)
    env_dir = tmp_path / "env"
    env_dir.mkdir()
    _log(env_dir, "output_log_b.txt", 1000)
    monkeypatch.setenv(ENV_LOG_DIR, str(env_dir))

    assert find_log_dir(str(explicit)) == explicit.resolve()
    assert find_log_dir() == env_dir.resolve()


def test_explicit_directory_without_logs_fails(tmp_path):
    (tmp_path / "notes.txt").write_text("not a log", encoding="utf-8")

    with pytest.raises(LogDirNotFoundError):
        find_log_dir(tmp_path)


def test_invalid_env_directory_fails(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_LOG_DIR, str(tmp_path / "missing"))

    with pytest.raises(LogDirNotFoundError) as excinfo:
        find_log_dir()
    assert ENV_LOG_DIR in str(excinfo.value)


def test_default_candidates(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "AppData" / "Local"))
    candidate = tmp_path / "AppData" / "LocalLow" / "VRChat" / "VRChat"
    candidate.mkdir(parents=True)
    _log(candidate, "output_log_c.txt", 1000)

    assert default_log_dirs()[0] == candidate
    assert find_log_dir() == candidate.resolve()


def test_no_candidates_fails(monkeypatch):
    monkeypatch.setattr(paths, "default_log_dirs", lambda: [])

    with pytest.raises(LogDirNotFoundError):
        find_log_dir()


def test_user_profile_fallback(tmp_path, monkeypatch):
    monkeypatch.setenv("USERPROFILE", str(tmp_path))

    assert default_log_dirs()[0] == tmp_path / "AppData" / "LocalLow" / "VRChat" / "VRChat"


def test_files_sorted_by_mtime(tmp_path):
    newest = _log(tmp_path, "output_log_a.txt", 3000)
    oldest = _log(tmp_path, "output_log_c.txt", 1000)
    middle = _log(tmp_path, "output_log_b.txt", 2000)
    (tmp_path / "player.log").write_text("ignored", encoding="utf-8")

    assert list_log_files(tmp_path) == [oldest, middle, newest]
    assert find_latest_log_file(tmp_path) == newest


def test_latest_in_empty_directory(tmp_path):
    with pytest.raises(NoLogFilesError):
        find_latest_log_file(tmp_path)
