"""Event parsing and streaming endpoints."""

from __future__ import annotations

import json
from datetime import datetime
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from fastapi.concurrency import run_in_threadpool

from api.schemas import (
    ErrorMessage,
    EventOut,
    LatestLogFile,
    LineError,
    ParseRequest,
    ParseResponse,
)
from channels import select
from config_loader import build_config
from errors import ConfigError, LogDirNotFoundError, NoLogFilesError, ParseError
from models import TypeFilter
from paths import find_latest_log_file, find_log_dir
from pipeline import EventPipeline
from services import WatchEngine


# Longest a stream waits on an idle log before checking for a disconnected client.
DISCONNECT_POLL = 0.5


async def _event_stream(
    engine: WatchEngine,
    request: Request,
    max_events: Optional[int],
) -> AsyncIterator[str]:
    events, errors = engine.start()
    sent = 0
    try:
        open_channels = [events, errors]
        while open_channels:
            if await request.is_disconnected():
                break
            selected = await run_in_threadpool(select, open_channels, None, DISCONNECT_POLL)
            if selected is None:
                continue
            if not selected.ok:
                open_channels.remove(selected.source)
                continue
            if selected.source is events:
                yield json.dumps(EventOut.from_event(selected.value).model_dump(mode="json", exclude_none=True)) + "\n"
                sent += 1
                if max_events and sent >= max_events:
                    break
            else:
                yield json.dumps({"error": str(selected.value)}) + "\n"
    finally:
        engine.stop()


def get_router(log_dir: Optional[str] = None) -> APIRouter:
    """Create a router bound to the provided log directory (auto-detected if None)."""

    router = APIRouter(tags=["events"])

    @router.post(
        "/parse",
        response_model=ParseResponse,
        responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage}},
    )
    def parse_lines(payload: ParseRequest) -> ParseResponse:
        if set(payload.include_types) & set(payload.exclude_types):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="event types cannot be both included and excluded",
            )
        pipeline = EventPipeline(
            type_filter=TypeFilter.compile(payload.include_types, payload.exclude_types),
            include_raw_line=payload.include_raw_line,
        )
        events: List[EventOut] = []
        errors: List[LineError] = []
        for number, line in enumerate(payload.lines, start=1):
            try:
                event = pipeline.build(line)
            except ParseError as exc:
                errors.append(LineError(line_number=number, line=line, detail=str(exc)))
                continue
            if event is not None:
                events.append(EventOut.from_event(event))
        return ParseResponse(events=events, errors=errors)

    @router.get(
        "/logs/latest",
        response_model=LatestLogFile,
        responses={status.HTTP_404_NOT_FOUND: {"model": ErrorMessage}},
    )
    def latest_log_file() -> LatestLogFile:
        try:
            directory = find_log_dir(log_dir)
            latest = find_latest_log_file(directory)
        except (LogDirNotFoundError, NoLogFilesError) as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return LatestLogFile(
            log_dir=str(directory),
            path=str(latest),
            modified_at=datetime.fromtimestamp(latest.stat().st_mtime),
        )

    @router.get(
        "/events/stream",
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
            status.HTTP_404_NOT_FOUND: {"model": ErrorMessage},
        },
    )
    def stream_events(
        request: Request,
        replay_last: int = Query(default=-1, ge=-1, description="-1 disabled, 0 from start"),
        include_types: Optional[List[str]] = Query(default=None),
        max_events: Optional[int] = Query(default=None, ge=1),
    ) -> StreamingResponse:
        raw = {"log_dir": log_dir or "", "include_types": include_types or []}
        if replay_last == 0:
            raw["replay"] = {"mode": "from_start"}
        elif replay_last > 0:
            raw["replay"] = {"mode": "last_n", "last_n": replay_last}
        try:
            engine = WatchEngine(build_config(raw))
        except ConfigError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except LogDirNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return StreamingResponse(
            _event_stream(engine, request, max_events),
            media_type="application/x-ndjson",
        )

    return router
