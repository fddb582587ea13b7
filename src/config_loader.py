import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from errors import ConfigError
from models import (
    DEFAULT_MAX_REPLAY_LAST_N,
    EventType,
    ReplayDirective,
    ReplayMode,
    TypeFilter,
    WatchConfig,
    to_local_naive,
)

# Setup logger
logger = logging.getLogger(__name__)

KNOWN_KEYS = {
    'log_dir',
    'poll_interval',
    'include_raw_line',
    'include_types',
    'exclude_types',
    'replay',
    'max_replay_lines',
    'stop_on_parse_error',
}

def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {'1', 'true', 'yes', 'on'}


def _parse_optional_int(value: Any, label: str) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigError(f"{label} must be an integer: {exc}") from exc


def _parse_float(value: Any, label: str, default: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{label} must be a number of seconds: {exc}") from exc


def parse_timestamp(value: Any, label: str) -> Optional[datetime]:
    """Accept a datetime or an ISO 8601 / RFC 3339 string (``Z`` suffix allowed)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ConfigError(f"invalid {label} timestamp {value!r}: {exc}") from exc
    return to_local_naive(parsed)


def normalise_event_types(values: Optional[Iterable[Any]]) -> List[EventType]:
    """
    Convert user supplied names (case-insensitive, comma separated allowed)
    into unique EventTypes, preserving order.
    """
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    result: List[EventType] = []
    for raw in values:
        for name in str(raw).split(','):
            if not name.strip():
                continue
            event_type = EventType.parse(name)
            if event_type not in result:
                result.append(event_type)
    return result


def reject_overlap(include: Iterable[EventType], exclude: Iterable[EventType]) -> None:
    excluded = set(exclude)
    for event_type in include:
        if event_type in excluded:
            raise ConfigError(
                f"event type {event_type.value!r} cannot be both included and excluded"
            )


def _build_replay(raw: Any) -> ReplayDirective:
    if raw is None:
        return ReplayDirective.none()
    if not isinstance(raw, dict):
        raise ConfigError("replay must be a mapping with a 'mode' key")
    mode_text = str(raw.get('mode') or 'none').strip().lower()
    try:
        mode = ReplayMode(mode_text)
    except ValueError as exc:
        choices = ', '.join(m.value for m in ReplayMode)
        raise ConfigError(f"invalid replay mode {mode_text!r} (valid: {choices})") from exc

    if mode == ReplayMode.LAST_N:
        last_n = _parse_optional_int(raw.get('last_n'), 'replay.last_n')
        if last_n is None:
            raise ConfigError("replay.last_n is required when mode is last_n")
        return ReplayDirective.last(last_n)
    if mode == ReplayMode.SINCE_TIME:
        return ReplayDirective(mode=mode, since=parse_timestamp(raw.get('since'), 'replay.since'))
    if mode == ReplayMode.FROM_START:
        return ReplayDirective.from_start()
    return ReplayDirective.none()


def build_config(raw: Dict[str, Any], log: Optional[logging.Logger] = None) -> WatchConfig:
    """Build and validate a WatchConfig from raw CLI or YAML inputs."""
    raw = dict(raw or {})
    unknown = sorted(set(raw) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

    include = normalise_event_types(raw.get('include_types'))
    exclude = normalise_event_types(raw.get('exclude_types'))
    reject_overlap(include, exclude)

    max_lines = _parse_optional_int(raw.get('max_replay_lines'), 'max_replay_lines')

    cfg = WatchConfig(
        log_dir=str(raw.get('log_dir') or '').strip(),
        poll_interval=_parse_float(
            raw.get('poll_interval'), 'poll_interval', WatchConfig.DEFAULT_POLL_INTERVAL
        ),
        include_raw_line=_parse_bool(raw.get('include_raw_line')),
        type_filter=TypeFilter.compile(include, exclude),
        replay=_build_replay(raw.get('replay')),
        max_replay_lines=DEFAULT_MAX_REPLAY_LAST_N if max_lines is None else max_lines,
        stop_on_parse_error=_parse_bool(raw.get('stop_on_parse_error')),
        logger=log,
    )
    cfg.validate()
    logger.debug("Built watch config: %s", cfg)
    return cfg


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a raw mapping for :func:`build_config`."""
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}", underlying=exc) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data
