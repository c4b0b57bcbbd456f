"""Live transcription WebSocket endpoint and its upgrade gatekeeper.

Browsers cannot attach custom headers to a WebSocket upgrade, so the session
token travels as a requested subprotocol of the form ``access_token.<jwt>``.
The matched entry is echoed back on accept to complete the negotiation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import APIRouter, WebSocket, status
from fastapi.responses import PlainTextResponse

from transcribe_relay.api.dependencies import (
    SettingsDep,
    TokenServiceDep,
    UpstreamConnectorDep,
)
from transcribe_relay.services.proxy import ProxySession
from transcribe_relay.services.sockets import ClientSocket
from transcribe_relay.services.upstream import build_upstream_headers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["live-transcription"])

ACCESS_TOKEN_PREFIX = "access_token."
DENIAL_EXTENSION = "websocket.http.response"
# OPTIONS is answered by the CORS middleware before routing.
NON_UPGRADE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def find_token_subprotocol(subprotocols: Iterable[str]) -> str | None:
    """Return the first requested subprotocol carrying a session token."""
    for entry in subprotocols:
        candidate = entry.strip()
        if candidate.startswith(ACCESS_TOKEN_PREFIX):
            return candidate
    return None


async def reject_upgrade(
    websocket: WebSocket,
    status_code: int,
    detail: str,
    headers: dict[str, str] | None = None,
) -> None:
    """Refuse the upgrade with a plain HTTP response where the server allows it."""
    if DENIAL_EXTENSION in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(
            PlainTextResponse(detail, status_code=status_code, headers=headers)
        )
    else:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=detail)


@router.api_route("/live-transcription", methods=NON_UPGRADE_METHODS, include_in_schema=False)
async def live_transcription_requires_upgrade() -> PlainTextResponse:
    """Plain HTTP requests to the live endpoint must upgrade, whatever the method."""
    return PlainTextResponse("Expected WebSocket", status_code=status.HTTP_426_UPGRADE_REQUIRED)


@router.websocket("/live-transcription")
async def live_transcription(
    websocket: WebSocket,
    app_settings: SettingsDep,
    tokens: TokenServiceDep,
    connector: UpstreamConnectorDep,
) -> None:
    """Authenticate the upgrade, then relay audio and transcripts."""
    token_protocol = find_token_subprotocol(websocket.scope.get("subprotocols") or [])
    if token_protocol is None:
        logger.warning("Rejected live transcription upgrade: no access token subprotocol")
        await reject_upgrade(
            websocket, status.HTTP_401_UNAUTHORIZED, "Unauthorized", app_settings.cors_headers
        )
        return

    if not tokens.verify(token_protocol[len(ACCESS_TOKEN_PREFIX):]):
        logger.warning("Rejected live transcription upgrade: invalid session token")
        await reject_upgrade(
            websocket, status.HTTP_401_UNAUTHORIZED, "Unauthorized", app_settings.cors_headers
        )
        return

    await websocket.accept(subprotocol=token_protocol)

    session = ProxySession(
        ClientSocket(websocket),
        upstream_url=app_settings.upstream_url,
        upstream_headers=build_upstream_headers(app_settings),
        query_params=websocket.query_params,
        connect_timeout=app_settings.upstream_connect_timeout_seconds,
        connector=connector,
    )
    await session.run()
