"""Upstream speech-recognition connection helpers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from urllib.parse import urlencode, urlsplit

from websockets.asyncio.client import connect

from transcribe_relay.core.errors import UpstreamConnectError
from transcribe_relay.core.settings import Settings
from transcribe_relay.services.sockets import RelaySocket, UpstreamSocket

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "nova-2"

# Query parameters forwarded to the upstream service, in order, with defaults.
UPSTREAM_PARAM_DEFAULTS: tuple[tuple[str, str], ...] = (
    ("model", DEFAULT_MODEL),
    ("encoding", "linear16"),
    ("sample_rate", "16000"),
    ("channels", "1"),
    ("punctuate", "true"),
    ("interim_results", "true"),
)

UpstreamConnector = Callable[[str, Mapping[str, str]], Awaitable[RelaySocket]]


def build_upstream_params(query: Mapping[str, str]) -> dict[str, str]:
    """Pick the forwarded parameters from ``query``, filling in defaults.

    Values are passed through unvalidated; empty values fall back to defaults.
    """
    return {name: query.get(name) or default for name, default in UPSTREAM_PARAM_DEFAULTS}


def build_upstream_url(base_url: str, query: Mapping[str, str]) -> str:
    """Return the upstream WebSocket URL for a client's query parameters."""
    parts = urlsplit(base_url)
    if parts.scheme not in {"ws", "wss"} or not parts.netloc:
        raise UpstreamConnectError(f"Invalid upstream URL: {base_url!r}")
    separator = "&" if parts.query else "?"
    return f"{base_url}{separator}{urlencode(build_upstream_params(query))}"


def build_upstream_headers(app_settings: Settings) -> dict[str, str]:
    """Return the headers that authenticate the relay to the upstream service."""
    return {
        "Authorization": f"{app_settings.upstream_auth_scheme} {app_settings.upstream_api_key}",
    }


async def websocket_connector(url: str, headers: Mapping[str, str]) -> RelaySocket:
    """Open an upstream WebSocket with the ``websockets`` asyncio client."""
    connection = await connect(url, additional_headers=dict(headers), open_timeout=None)
    return UpstreamSocket(connection)


async def dial_upstream(
    url: str,
    headers: Mapping[str, str],
    *,
    timeout: float,
    connector: UpstreamConnector = websocket_connector,
) -> RelaySocket:
    """Connect to the upstream service within ``timeout`` seconds.

    Raises:
        UpstreamConnectError: If the dial fails or does not finish in time.
    """
    try:
        return await asyncio.wait_for(connector(url, headers), timeout=timeout)
    except TimeoutError as exc:
        raise UpstreamConnectError(
            f"Timed out connecting to upstream after {timeout:g}s"
        ) from exc
    except UpstreamConnectError:
        raise
    except Exception as exc:
        raise UpstreamConnectError(f"Failed to connect to upstream: {exc}") from exc
