"""Shared fixtures: an in-memory key-value store with a controllable clock."""

from typing import Dict, Optional, Set

import httpx
import pytest

from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.exceptions import StoreError
from cache_gateway.upstream.client import UpstreamClient

UPSTREAM_BASE_URL = "https://upstream.test/api/"


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryStore(KeyValueStore):
    """
    KeyValueStore test double with Redis TTL semantics.

    INCR keeps an existing TTL, expired keys read as absent, and any
    operation listed in fail_ops (or every operation while available is
    False) raises StoreError.
    """

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock or FakeClock()
        self.data: Dict[str, object] = {}
        self.expires_at: Dict[str, float] = {}
        self.available = True
        self.fail_ops: Set[str] = set()
        self.connected = False
        self.expire_calls = 0

    def _check(self, operation: str, key: str) -> None:
        if not self.available or operation in self.fail_ops:
            raise StoreError("Connection refused", operation=operation, key=key)

    def _purge(self, key: str) -> None:
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)

    def ttl(self, key: str) -> Optional[float]:
        """Seconds left before key expires, None if key has no expiry."""
        self._purge(key)
        deadline = self.expires_at.get(key)
        return None if deadline is None else deadline - self.clock()

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def ping(self) -> bool:
        return self.available

    async def get(self, key: str) -> Optional[bytes]:
        self._check("get", key)
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        self._check("set", key)
        self.data[key] = value
        self.expires_at[key] = self.clock() + ttl

    async def incr(self, key: str) -> int:
        self._check("incr", key)
        self._purge(key)
        count = int(self.data.get(key, 0)) + 1
        self.data[key] = count
        return count

    async def expire(self, key: str, ttl: int) -> None:
        self._check("expire", key)
        self._purge(key)
        self.expire_calls += 1
        if key in self.data:
            self.expires_at[key] = self.clock() + ttl


def make_upstream(handler) -> UpstreamClient:
    """Build an UpstreamClient answered by handler through httpx.MockTransport."""
    return UpstreamClient(UPSTREAM_BASE_URL, timeout=5.0, transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryStore:
    return InMemoryStore(clock)


@pytest.fixture
def upstream_factory():
    """Return make_upstream so tests can plug in their own handler."""
    return make_upstream
