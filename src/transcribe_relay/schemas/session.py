"""Schemas for session issuance and error payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SessionTokenResponse(BaseModel):
    """Body returned by ``GET /api/session``."""

    token: str = Field(..., description="Signed session token for the WebSocket upgrade.")


class ErrorDetail(BaseModel):
    """Structured authentication error detail."""

    type: str
    code: str
    message: str


class ErrorBody(BaseModel):
    """Envelope for structured HTTP errors."""

    error: ErrorDetail


class ErrorFrame(BaseModel):
    """Error frame the relay sends over the client WebSocket."""

    type: Literal["Error"] = "Error"
    description: str
    code: str
