"""Logging setup for the relay process."""

from __future__ import annotations

import logging


def configure_logging(level: str = "INFO", fmt: str | None = None) -> None:
    """Configure root logging once for the process."""
    resolved = logging.getLevelName((level or "INFO").upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(
        level=resolved,
        format=fmt or "%(levelname)s %(asctime)s [%(name)s:%(lineno)d] %(message)s",
    )
    # websockets logs every frame at DEBUG
    logging.getLogger("websockets").setLevel(max(resolved, logging.INFO))
