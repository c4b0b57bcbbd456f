"""Single-use page nonces.

A nonce is embedded in the served index page and later exchanged for a
session token. Each value is valid exactly once and only until its expiry.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from threading import Lock

logger = logging.getLogger(__name__)

NONCE_BYTES = 16
DEFAULT_NONCE_TTL_SECONDS = 300.0


class NonceStore:
    """In-process table of outstanding nonces and their expiry times."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_NONCE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, value: object) -> bool:
        with self._lock:
            return value in self._entries

    def issue(self) -> str:
        """Create, record and return a fresh hex nonce."""
        value = secrets.token_hex(NONCE_BYTES)
        with self._lock:
            self._entries[value] = self._clock() + self.ttl_seconds
        return value

    def consume(self, value: str | None) -> bool:
        """Remove ``value`` and return True only if it existed and was unexpired.

        Expired entries are removed as well, so a value can never succeed twice.
        """
        if not value:
            return False
        with self._lock:
            expiry = self._entries.pop(value, None)
        if expiry is None:
            return False
        return self._clock() < expiry

    def sweep(self) -> int:
        """Drop all expired entries and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [value for value, expiry in self._entries.items() if now >= expiry]
            for value in expired:
                del self._entries[value]
        return len(expired)


class NonceSweeper:
    """Periodically sweeps a :class:`NonceStore` in the background."""

    def __init__(self, store: NonceStore, interval_seconds: float = 60.0) -> None:
        self.store = store
        self.interval_seconds = max(0.01, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                removed = self.store.sweep()
                if removed:
                    logger.debug("Swept %d expired nonces", removed)
