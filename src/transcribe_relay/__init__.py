"""Authenticated WebSocket relay for streaming speech recognition."""

__version__ = "0.1.0"
