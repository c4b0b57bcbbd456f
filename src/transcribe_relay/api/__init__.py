"""HTTP and WebSocket endpoints."""

from .endpoints import live_router, pages_router, session_router, system_router

__all__ = [
    "live_router",
    "pages_router",
    "session_router",
    "system_router",
]
