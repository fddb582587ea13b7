"""Pydantic schemas used by the public FastAPI surface."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import Event, EventType


class EventOut(BaseModel):
    """A parsed log event as returned over HTTP."""

    type: EventType
    timestamp: datetime
    player_name: Optional[str] = None
    player_id: Optional[str] = None
    world_id: Optional[str] = None
    world_name: Optional[str] = None
    instance_id: Optional[str] = None
    raw_line: Optional[str] = None

    @classmethod
    def from_event(cls, event: Event) -> "EventOut":
        return cls(**event.to_dict())


class ParseRequest(BaseModel):
    """Request body for parsing a batch of raw log lines."""

    model_config = ConfigDict(extra="forbid")

    lines: List[str] = Field(
        description="Raw log lines, oldest first.",
        max_length=100_000,
    )
    include_types: List[EventType] = Field(
        default_factory=list,
        description="Only return these event types (empty means all).",
    )
    exclude_types: List[EventType] = Field(
        default_factory=list,
        description="Never return these event types; wins over include_types.",
    )
    include_raw_line: bool = Field(default=False)

    @field_validator("lines", mode="before")
    @classmethod
    def _split_text(cls, value):
        if isinstance(value, str):
            return value.splitlines()
        return value


class LineError(BaseModel):
    line_number: int = Field(ge=1)
    line: str
    detail: str


class ParseResponse(BaseModel):
    events: List[EventOut]
    errors: List[LineError]


class LatestLogFile(BaseModel):
    log_dir: str
    path: str
    modified_at: datetime


class ErrorMessage(BaseModel):
    detail: str
