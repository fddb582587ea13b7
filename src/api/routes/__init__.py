"""API route registration helpers."""

from .events import get_router as get_events_router

__all__ = ["get_events_router"]
