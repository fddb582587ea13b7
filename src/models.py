import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import ClassVar, FrozenSet, Iterable, Optional, Tuple

from errors import ConfigError


class EventType(str, Enum):
    """Kinds of events recognised in VRChat logs."""

    WORLD_JOIN = "world_join"
    PLAYER_JOIN = "player_join"
    PLAYER_LEFT = "player_left"

    @classmethod
    def names(cls) -> list:
        """Sorted list of valid event type names."""
        return sorted(member.value for member in cls)

    @classmethod
    def parse(cls, name: str) -> "EventType":
        """Case-insensitive lookup; raises ConfigError for unknown names."""
        cleaned = (name or "").strip().lower()
        for member in cls:
            if member.value == cleaned:
                return member
        raise ConfigError(
            f"unknown event type {name!r} (valid: {', '.join(cls.names())})"
        )


@dataclass(frozen=True)
class Event:
    type: EventType
    timestamp: datetime
    player_name: str = ""
    player_id: str = ""
    world_id: str = ""
    world_name: str = ""
    instance_id: str = ""
    raw_line: str = ""

    def with_raw_line(self, line: str) -> "Event":
        return replace(self, raw_line=line)

    def to_dict(self) -> dict:
        """
        Serialise to a JSON friendly structure.
        Empty optional fields are omitted.
        """
        data = {
            'type': self.type.value,
            'timestamp': self.timestamp.isoformat(),
        }
        for key in ('player_name', 'player_id', 'world_id', 'world_name', 'instance_id', 'raw_line'):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


class ReplayMode(str, Enum):
    NONE = "none"
    FROM_START = "from_start"
    LAST_N = "last_n"
    SINCE_TIME = "since_time"


DEFAULT_MAX_REPLAY_LAST_N = 10000


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Log timestamps are naive local time; convert aware values to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


@dataclass(frozen=True)
class ReplayDirective:
    """
    How existing log content is handled before live tailing.
    Exactly one mode is active; ``last_n`` and ``since`` only apply to their mode.
    """

    mode: ReplayMode = ReplayMode.NONE
    last_n: int = 0
    since: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "since", to_local_naive(self.since))

    @classmethod
    def none(cls) -> "ReplayDirective":
        return cls()

    @classmethod
    def from_start(cls) -> "ReplayDirective":
        return cls(mode=ReplayMode.FROM_START)

    @classmethod
    def last(cls, n: int) -> "ReplayDirective":
        return cls(mode=ReplayMode.LAST_N, last_n=n)

    @classmethod
    def since_time(cls, since: datetime) -> "ReplayDirective":
        return cls(mode=ReplayMode.SINCE_TIME, since=since)

    @property
    def reads_from_start(self) -> bool:
        return self.mode in (ReplayMode.FROM_START, ReplayMode.SINCE_TIME)

    def validate(self, max_allowed: int = DEFAULT_MAX_REPLAY_LAST_N) -> None:
        """
        Check the directive against the configured replay ceiling.
        ``max_allowed`` of 0 means the default ceiling, negative means unlimited.
        """
        if self.mode == ReplayMode.LAST_N:
            if self.last_n < 0:
                raise ConfigError(f"replay last_n must be non-negative, got {self.last_n}")
            ceiling = max_allowed or DEFAULT_MAX_REPLAY_LAST_N
            if ceiling > 0 and self.last_n > ceiling:
                raise ConfigError(
                    f"replay last_n ({self.last_n}) exceeds maximum of {ceiling}"
                )
        if self.mode == ReplayMode.SINCE_TIME and self.since is None:
            raise ConfigError("replay since must be set when mode is since_time")


@dataclass(frozen=True)
class TypeFilter:
    """
    Compiled allow/deny predicate over event types.
    An empty include set allows everything; exclude always wins.
    """

    include: FrozenSet[EventType] = frozenset()
    exclude: FrozenSet[EventType] = frozenset()

    @classmethod
    def compile(
        cls,
        include: Optional[Iterable] = None,
        exclude: Optional[Iterable] = None,
    ) -> "TypeFilter":
        return cls(
            include=frozenset(_coerce_types(include)),
            exclude=frozenset(_coerce_types(exclude)),
        )

    def allows(self, event_type: EventType) -> bool:
        if self.include and event_type not in self.include:
            return False
        if event_type in self.exclude:
            return False
        return True


def _coerce_types(values: Optional[Iterable]) -> Tuple[EventType, ...]:
    if not values:
        return ()
    return tuple(
        value if isinstance(value, EventType) else EventType.parse(value)
        for value in values
    )


@dataclass(frozen=True)
class WatchConfig:
    DEFAULT_POLL_INTERVAL: ClassVar[float] = 2.0

    log_dir: str = ""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    include_raw_line: bool = False
    type_filter: TypeFilter = field(default_factory=TypeFilter)
    replay: ReplayDirective = field(default_factory=ReplayDirective)
    max_replay_lines: int = DEFAULT_MAX_REPLAY_LAST_N
    stop_on_parse_error: bool = False
    logger: Optional[logging.Logger] = None

    def validate(self) -> None:
        """
        Validate the overall config:
        - Replay directive against the replay ceiling
        - Poll interval non-negative (0 selects the default)
        """
        self.replay.validate(self.max_replay_lines)
        if self.poll_interval < 0:
            raise ConfigError(
                f"poll interval must be non-negative, got {self.poll_interval}"
            )

    @property
    def effective_poll_interval(self) -> float:
        return self.poll_interval or self.DEFAULT_POLL_INTERVAL
