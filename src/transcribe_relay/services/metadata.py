"""Read the ``[meta]`` table of the starter's TOML config file."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from transcribe_relay.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_metadata(path: str | Path) -> dict[str, Any]:
    """Return the ``[meta]`` table from ``path``.

    Raises:
        ConfigurationError: If the file is unreadable, malformed or has no
            ``[meta]`` table.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            document = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.error("Error reading metadata from %s: %s", path, exc)
        raise ConfigurationError(f"Failed to read metadata from {path.name}") from exc

    meta = document.get("meta")
    if not isinstance(meta, dict):
        raise ConfigurationError(f"Missing [meta] section in {path.name}")
    return meta
