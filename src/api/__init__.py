"""HTTP surface for parsing VRChat log lines and streaming watch events."""

from .routes import get_events_router
from .server import app, create_app

__all__ = ["app", "create_app", "get_events_router"]
