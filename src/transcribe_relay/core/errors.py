"""Error taxonomy for the relay.

Every error carries a stable ``code`` that is reported to clients, either in
an HTTP error body or in an in-band WebSocket error frame.
"""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base exception for relay failures."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class AuthenticationError(RelayError):
    """Raised when a nonce or session token is missing, invalid or expired."""

    code = "INVALID_TOKEN"


class UpstreamConnectError(RelayError):
    """Raised when the upstream dial fails or times out."""

    code = "CONNECTION_FAILED"


class UpstreamProtocolError(RelayError):
    """Raised when the upstream socket errors after the relay started."""

    code = "UPSTREAM_ERROR"


class ConfigurationError(RelayError):
    """Raised for missing startup configuration or unreadable config files."""

    code = "CONFIGURATION_ERROR"
