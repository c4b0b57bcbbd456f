# tests/conftest.py
from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("UPSTREAM_API_KEY", "test-upstream-key")

from transcribe_relay.core.settings import Settings
from transcribe_relay.main import create_app
from transcribe_relay.services.sockets import Frame, SocketClosed

TEST_API_KEY = "test-upstream-key"
TEST_SECRET = "unit-test-signing-secret"
TRANSCRIPT = '{"type":"Results","channel":{"alternatives":[{"transcript":"hello"}]}}'

INDEX_HTML = """<!doctype html>
<html>
<head>
<title>Live Transcription</title>
</head>
<body><div id="app"></div></body>
</html>
"""


def make_settings(**overrides: Any) -> Settings:
    """Build settings isolated from the developer's environment and .env file."""
    values: dict[str, Any] = {
        "upstream_api_key": TEST_API_KEY,
        "session_secret": None,
        "session_nonce_required": None,
        "frontend_dist_dir": "/nonexistent/frontend/dist",
        "metadata_file": "/nonexistent/deepgram.toml",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


class FakeSocket:
    """In-memory stand-in for either leg of a proxy session."""

    def __init__(self, *, reply: Callable[[Frame], Frame | None] | None = None) -> None:
        self.sent: list[Frame] = []
        self.closed_with: tuple[int, str] | None = None
        self.close_calls = 0
        self._inbox: asyncio.Queue[Frame | SocketClosed] = asyncio.Queue()
        self._open = True
        self._reply = reply

    @property
    def is_open(self) -> bool:
        return self._open

    def feed(self, item: Frame | SocketClosed) -> None:
        """Queue a frame (or a close) to be returned by ``receive``."""
        self._inbox.put_nowait(item)

    async def receive(self) -> Frame:
        item = await self._inbox.get()
        if isinstance(item, SocketClosed):
            self._open = False
            raise item
        return item

    async def send(self, data: Frame) -> None:
        if not self._open:
            raise SocketClosed()
        self.sent.append(data)
        if self._reply is not None:
            response = self._reply(data)
            if response is not None:
                self.feed(response)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls += 1
        if self._open:
            self._open = False
            self.closed_with = (code, reason)
            self.feed(SocketClosed(code, reason))


class FakeConnector:
    """Records upstream dials and hands out :class:`FakeSocket` instances."""

    def __init__(
        self,
        *,
        error: BaseException | None = None,
        delay: float = 0.0,
        reply: Callable[[Frame], Frame | None] | None = None,
    ) -> None:
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.sockets: list[FakeSocket] = []
        self._error = error
        self._delay = delay
        self._reply = reply

    async def __call__(self, url: str, headers: Mapping[str, str]) -> FakeSocket:
        self.calls.append((url, dict(headers)))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        socket = FakeSocket(reply=self._reply)
        self.sockets.append(socket)
        return socket


def transcript_reply(data: Frame) -> Frame | None:
    """Upstream behaviour: answer every audio frame with one transcript."""
    return TRANSCRIPT if isinstance(data, bytes) else None


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def frontend_dist(tmp_path: Path) -> Path:
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    return dist


@pytest.fixture()
def fake_connector() -> FakeConnector:
    return FakeConnector(reply=transcript_reply)


@pytest.fixture()
def app(fake_connector: FakeConnector) -> FastAPI:
    """Application with nonce enforcement off and a fake upstream."""
    return create_app(make_settings(), upstream_connector=fake_connector)


@pytest.fixture()
def enforced_app(frontend_dist: Path, fake_connector: FakeConnector) -> FastAPI:
    """Application with an external secret, so nonces are required."""
    return create_app(
        make_settings(session_secret=TEST_SECRET, frontend_dist_dir=str(frontend_dist)),
        upstream_connector=fake_connector,
    )


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def enforced_client(enforced_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(enforced_app, base_url="http://test") as test_client:
        yield test_client
