"""Socket adapters shared by both legs of a proxy session.

The relay only needs four capabilities from a socket: whether it is open,
receive, send and close. Both Starlette's server-side ``WebSocket`` and the
``websockets`` client connection are adapted to that surface here.
"""

from __future__ import annotations

from typing import Any, Protocol

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.protocol import State

Frame = str | bytes


class SocketClosed(Exception):
    """Raised by a :class:`RelaySocket` once its peer has gone away."""

    def __init__(self, code: int = 1000, reason: str = "", *, error: bool = False) -> None:
        super().__init__(f"socket closed ({code}) {reason}".strip())
        self.code = code
        self.reason = reason
        self.error = error


class RelaySocket(Protocol):
    """Minimal socket surface the relay needs from either leg."""

    @property
    def is_open(self) -> bool: ...

    async def receive(self) -> Frame: ...

    async def send(self, data: Frame) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class ClientSocket:
    """Adapts an accepted Starlette :class:`WebSocket`."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def receive(self) -> Frame:
        try:
            message = await self.websocket.receive()
        except RuntimeError as exc:
            raise SocketClosed(reason=str(exc)) from exc

        if message["type"] == "websocket.disconnect":
            raise SocketClosed(message.get("code", 1000), message.get("reason") or "")
        if message.get("bytes") is not None:
            return message["bytes"]
        return message.get("text") or ""

    async def send(self, data: Frame) -> None:
        try:
            if isinstance(data, bytes):
                await self.websocket.send_bytes(data)
            else:
                await self.websocket.send_text(data)
        except WebSocketDisconnect as exc:
            raise SocketClosed(exc.code, exc.reason or "") from exc
        except (RuntimeError, OSError) as exc:
            raise SocketClosed(reason=str(exc)) from exc

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.is_open:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except (RuntimeError, OSError):
            pass


class UpstreamSocket:
    """Adapts a ``websockets`` asyncio client connection."""

    def __init__(self, connection: Any) -> None:
        self.connection = connection

    @property
    def is_open(self) -> bool:
        return self.connection.state is State.OPEN

    async def receive(self) -> Frame:
        try:
            message: Frame = await self.connection.recv()
        except ConnectionClosed as exc:
            raise _closed_from(exc) from exc
        return message

    async def send(self, data: Frame) -> None:
        try:
            await self.connection.send(data)
        except ConnectionClosed as exc:
            raise _closed_from(exc) from exc

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self.connection.close(code=code, reason=reason)


def _closed_from(exc: ConnectionClosed) -> SocketClosed:
    rcvd = exc.rcvd
    if isinstance(exc, ConnectionClosedOK):
        return SocketClosed(rcvd.code if rcvd else 1000, rcvd.reason if rcvd else "")
    return SocketClosed(rcvd.code if rcvd else 1006, rcvd.reason if rcvd else "", error=True)
