"""Paired client/upstream WebSocket relay.

A :class:`ProxySession` owns one accepted client socket and, once dialed, one
upstream socket. Both legs live and die together: whichever side closes or
errors first, the session tears down the other.

Lifecycle::

    CONNECTING --dial ok--> RELAYING --any close/error--> CLOSING --> CLOSED
        |                                                   ^
        +--dial failed / timed out--------------------------+

Client frames sent while the upstream dial is in flight are not read and are
therefore never forwarded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from enum import Enum

from transcribe_relay.core.errors import (
    RelayError,
    UpstreamConnectError,
    UpstreamProtocolError,
)
from transcribe_relay.schemas.session import ErrorFrame
from transcribe_relay.services.sockets import Frame, RelaySocket, SocketClosed
from transcribe_relay.services.upstream import (
    UpstreamConnector,
    build_upstream_url,
    dial_upstream,
    websocket_connector,
)

logger = logging.getLogger(__name__)

SETUP_FAILED_CLOSE_CODE = 3000
SETUP_FAILED_REASON = "Setup failed"
DEFAULT_CLOSE_TIMEOUT_SECONDS = 5.0


class ProxyState(Enum):
    """Lifecycle states of a proxy session."""

    CONNECTING = "connecting"
    RELAYING = "relaying"
    CLOSING = "closing"
    CLOSED = "closed"


def error_frame(description: str, code: str) -> str:
    """Serialize an in-band error frame for the client."""
    return ErrorFrame(description=description, code=code).model_dump_json()


class ProxySession:
    """One live transcription connection: client leg plus upstream leg."""

    def __init__(
        self,
        client: RelaySocket,
        *,
        upstream_url: str,
        upstream_headers: Mapping[str, str],
        query_params: Mapping[str, str] | None = None,
        connect_timeout: float = 10.0,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT_SECONDS,
        connector: UpstreamConnector = websocket_connector,
    ) -> None:
        self.client = client
        self.upstream: RelaySocket | None = None
        self.state = ProxyState.CONNECTING
        self._upstream_base_url = upstream_url
        self._upstream_headers = dict(upstream_headers)
        self._query_params = dict(query_params or {})
        self._connect_timeout = connect_timeout
        self._close_timeout = close_timeout
        self._connector = connector
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self.state is ProxyState.CLOSED

    async def run(self) -> None:
        """Dial upstream, relay until either leg ends, then tear down both."""
        logger.info("Client connected to live transcription")
        try:
            url = build_upstream_url(self._upstream_base_url, self._query_params)
            logger.info("Connecting to upstream: %s", url)
            self.upstream = await dial_upstream(
                url,
                self._upstream_headers,
                timeout=self._connect_timeout,
                connector=self._connector,
            )
        except Exception as exc:
            await self.on_dial_failed(exc)
            return

        self.state = ProxyState.RELAYING
        logger.info("Connected to upstream")
        await self._relay()

    async def _relay(self) -> None:
        client_pump = asyncio.create_task(self._pump_client())
        upstream_pump = asyncio.create_task(self._pump_upstream())
        done, pending = await asyncio.wait(
            {client_pump, upstream_pump},
            return_when=asyncio.FIRST_COMPLETED,
        )

        # The pump that finished has already started teardown; let it complete
        # before cancelling the other one.
        await self.close()
        await self._closed.wait()

        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error("Proxy pump failed: %s", task.exception())

    async def _pump_client(self) -> None:
        while True:
            try:
                data = await self.client.receive()
            except SocketClosed as exc:
                await self.on_client_close(exc.code, exc.reason)
                return
            except Exception as exc:
                await self.on_client_error(exc)
                return
            await self.on_client_message(data)

    async def _pump_upstream(self) -> None:
        upstream = self.upstream
        if upstream is None:
            return
        while True:
            try:
                data = await upstream.receive()
            except SocketClosed as exc:
                if exc.error:
                    await self.on_upstream_error(UpstreamProtocolError(str(exc)))
                else:
                    await self.on_upstream_close(exc.code, exc.reason)
                return
            except Exception as exc:
                await self.on_upstream_error(exc)
                return
            await self.on_upstream_message(data)

    # --- events ---------------------------------------------------------------

    async def on_client_message(self, data: Frame) -> None:
        """Forward a client frame verbatim while the upstream leg is open."""
        upstream = self.upstream
        if self.state is not ProxyState.RELAYING or upstream is None or not upstream.is_open:
            return
        try:
            await upstream.send(data)
        except SocketClosed:
            logger.debug("Dropped client frame; upstream closed mid-send")

    async def on_upstream_message(self, data: Frame) -> None:
        """Forward an upstream frame verbatim while the client leg is open."""
        if self.state is not ProxyState.RELAYING or not self.client.is_open:
            return
        try:
            await self.client.send(data)
        except SocketClosed:
            logger.debug("Dropped upstream frame; client closed mid-send")

    async def on_client_close(self, code: int = 1000, reason: str = "") -> None:
        logger.info("Client disconnected (%s)", code)
        await self.close()

    async def on_client_error(self, exc: BaseException) -> None:
        logger.error("Client WebSocket error: %s", exc)
        await self.close()

    async def on_upstream_close(self, code: int = 1000, reason: str = "") -> None:
        logger.info("Upstream connection closed: %s %s", code, reason)
        await self.close()

    async def on_upstream_error(self, exc: BaseException) -> None:
        logger.error("Upstream WebSocket error: %s", exc)
        if self.state is ProxyState.RELAYING:
            await self.send_error("Upstream connection error", UpstreamProtocolError.code)
        await self.close()

    async def on_dial_failed(self, exc: BaseException) -> None:
        logger.error("Error setting up live transcription: %s", exc)
        if not isinstance(exc, RelayError):
            exc = UpstreamConnectError(str(exc) or exc.__class__.__name__)
        await self.send_error(str(exc), UpstreamConnectError.code)
        await self.close(SETUP_FAILED_CLOSE_CODE, SETUP_FAILED_REASON)

    # --- teardown -------------------------------------------------------------

    async def send_error(self, description: str, code: str) -> None:
        """Send an error frame to the client if it is still open."""
        if not self.client.is_open:
            return
        try:
            await self.client.send(error_frame(description, code))
        except SocketClosed as exc:
            logger.debug("Could not deliver error frame: %s", exc)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close both legs; later calls are no-ops.

        ``code`` and ``reason`` apply to the client leg.
        """
        if self.state in (ProxyState.CLOSING, ProxyState.CLOSED):
            return
        self.state = ProxyState.CLOSING

        legs = [self.client.close(code, reason)]
        if self.upstream is not None:
            legs.append(self.upstream.close())
        try:
            results = await asyncio.wait_for(
                asyncio.gather(*legs, return_exceptions=True),
                timeout=self._close_timeout,
            )
        except TimeoutError:
            logger.warning("Timed out closing proxy session after %gs", self._close_timeout)
        else:
            for result in results:
                if isinstance(result, BaseException):
                    logger.debug("Error while closing a leg: %s", result)

        self.state = ProxyState.CLOSED
        self._closed.set()
        logger.info("Proxy session closed")
