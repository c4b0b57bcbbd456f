"""Endpoint modules."""

from .live import router as live_router
from .pages import router as pages_router
from .session import router as session_router
from .system import router as system_router

__all__ = [
    "live_router",
    "pages_router",
    "session_router",
    "system_router",
]
