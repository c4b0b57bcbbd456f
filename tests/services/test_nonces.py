"""Tests for the single-use nonce store and its background sweeper."""

import asyncio

import pytest

from transcribe_relay.services.nonces import NonceStore, NonceSweeper


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> NonceStore:
    return NonceStore(ttl_seconds=300, clock=clock)


class TestNonceStore:
    def test_issue_returns_random_hex_with_16_bytes_of_entropy(self, store):
        first = store.issue()
        second = store.issue()
        assert first != second
        assert len(first) == 32
        int(first, 16)
        assert len(store) == 2

    def test_consume_succeeds_exactly_once(self, store):
        nonce = store.issue()
        assert store.consume(nonce) is True
        assert store.consume(nonce) is False
        assert store.consume(nonce) is False
        assert nonce not in store

    def test_unknown_or_empty_value_is_rejected(self, store):
        assert store.consume("deadbeef") is False
        assert store.consume("") is False
        assert store.consume(None) is False

    def test_expired_nonce_is_rejected_and_removed(self, store, clock):
        nonce = store.issue()
        clock.advance(300)
        assert store.consume(nonce) is False
        assert nonce not in store

    def test_nonce_valid_just_before_expiry(self, store, clock):
        nonce = store.issue()
        clock.advance(299.9)
        assert store.consume(nonce) is True

    def test_sweep_removes_only_expired_entries(self, store, clock):
        old = store.issue()
        clock.advance(200)
        fresh = store.issue()
        clock.advance(150)

        assert store.sweep() == 1
        assert old not in store
        assert fresh in store
        assert store.consume(fresh) is True

    def test_stores_are_isolated(self, clock):
        first = NonceStore(clock=clock)
        second = NonceStore(clock=clock)
        nonce = first.issue()
        assert second.consume(nonce) is False
        assert first.consume(nonce) is True


class TestNonceSweeper:
    @pytest.mark.asyncio
    async def test_background_sweep_evicts_expired_nonces(self, store, clock):
        store.issue()
        store.issue()
        clock.advance(301)

        sweeper = NonceSweeper(store, interval_seconds=0.01)
        await sweeper.start()
        try:
            for _ in range(100):
                if len(store) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert len(store) == 0
        assert sweeper.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_without_start_is_safe(self, store):
        sweeper = NonceSweeper(store, interval_seconds=60)
        await sweeper.stop()

        await sweeper.start()
        task = sweeper._task
        await sweeper.start()
        assert sweeper._task is task
        assert sweeper.running is True

        await sweeper.stop()
        assert sweeper.running is False
