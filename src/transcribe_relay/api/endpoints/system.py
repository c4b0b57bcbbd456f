"""Metadata and health endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from transcribe_relay.api.dependencies import SettingsDep
from transcribe_relay.services.metadata import load_metadata

router = APIRouter(tags=["system"])


@router.get("/metadata")
async def get_metadata(app_settings: SettingsDep) -> dict[str, Any]:
    """Return the ``[meta]`` table of the configured metadata file.

    Read failures surface as ``ConfigurationError`` and are rendered as a
    structured 500 by the application's error handler.
    """
    return load_metadata(app_settings.metadata_file)


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}
