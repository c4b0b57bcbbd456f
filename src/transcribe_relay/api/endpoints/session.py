"""Session token issuance endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from transcribe_relay.api.dependencies import NonceStoreDep, SettingsDep, TokenServiceDep
from transcribe_relay.core.errors import AuthenticationError
from transcribe_relay.schemas.session import SessionTokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])

INVALID_NONCE_MESSAGE = "Valid session nonce required. Please refresh the page."


@router.get(
    "/session",
    summary="Exchange a page nonce for a session token",
    response_model=SessionTokenResponse,
)
async def issue_session_token(
    request: Request,
    app_settings: SettingsDep,
    nonces: NonceStoreDep,
    tokens: TokenServiceDep,
) -> SessionTokenResponse:
    """Issue a session token, consuming the caller's nonce when enforcement is on."""
    if tokens.nonce_required:
        nonce = request.headers.get(app_settings.nonce_header)
        if not nonce or not nonces.consume(nonce):
            logger.warning("Rejected session request: missing or invalid nonce")
            raise AuthenticationError(INVALID_NONCE_MESSAGE, code="INVALID_NONCE")

    return SessionTokenResponse(token=tokens.issue())
