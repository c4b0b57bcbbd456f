"""Dependency providers for relay endpoints.

Shared services live on ``app.state`` and are created once per application
by :func:`transcribe_relay.main.create_app`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from transcribe_relay.core.settings import Settings
from transcribe_relay.services.nonces import NonceStore
from transcribe_relay.services.tokens import SessionTokenService
from transcribe_relay.services.upstream import UpstreamConnector


def get_settings(connection: HTTPConnection) -> Settings:
    """Return the settings the running application was built with."""
    return connection.app.state.settings  # type: ignore[no-any-return]


def get_nonce_store(connection: HTTPConnection) -> NonceStore:
    """Return the process-wide nonce store."""
    return connection.app.state.nonce_store  # type: ignore[no-any-return]


def get_token_service(connection: HTTPConnection) -> SessionTokenService:
    """Return the session token issuer/verifier."""
    return connection.app.state.token_service  # type: ignore[no-any-return]


def get_upstream_connector(connection: HTTPConnection) -> UpstreamConnector:
    """Return the callable used to dial the upstream service."""
    return connection.app.state.upstream_connector  # type: ignore[no-any-return]


SettingsDep = Annotated[Settings, Depends(get_settings)]
NonceStoreDep = Annotated[NonceStore, Depends(get_nonce_store)]
TokenServiceDep = Annotated[SessionTokenService, Depends(get_token_service)]
UpstreamConnectorDep = Annotated[UpstreamConnector, Depends(get_upstream_connector)]
