"""FastAPI application wiring for the log watcher."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI

from api.routes import get_events_router


def create_app(log_dir: Optional[str] = None) -> FastAPI:
    """Instantiate the FastAPI application."""

    app = FastAPI(
        title="VRChat Log Watch API",
        version="0.1.0",
        description=(
            "HTTP interface for parsing VRChat log lines and streaming live events."
        ),
    )

    app.state.log_dir = log_dir
    app.include_router(get_events_router(log_dir), prefix="/api")

    @app.get("/healthz", tags=["system"], summary="Liveness probe")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
