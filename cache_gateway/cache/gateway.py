"""Cache-aside read-through gateway in front of the upstream API.

This module provides the CacheGateway class: look the resource up in the
store, and on a miss fetch it from upstream and write it back with a TTL.
Store failures degrade (miss / skipped write); upstream failures always
propagate.
"""

from typing import NamedTuple

import structlog

from cache_gateway.cache.singleflight import SingleFlight
from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.exceptions import StoreError
from cache_gateway.store.keys import KeyBuilder
from cache_gateway.upstream.client import UpstreamClient

logger = structlog.get_logger(__name__)


class FetchResult(NamedTuple):
    """Payload returned by CacheGateway.fetch and where it came from."""

    payload: bytes
    served_from_cache: bool


class CacheGateway:
    """
    Cache-aside retrieval of named resources.

    Concurrent misses for the same resource within this process share a
    single upstream fetch and a single write-back.

    Attributes:
        store: Injected key-value store
        upstream: Injected upstream client
        ttl: Cache entry TTL in seconds
        fail_open: Treat store read failures as misses instead of raising
    """

    def __init__(
        self,
        store: KeyValueStore,
        upstream: UpstreamClient,
        ttl: int,
        keys: KeyBuilder | None = None,
        fail_open: bool = True,
    ) -> None:
        self.store = store
        self.upstream = upstream
        self.ttl = ttl
        self.keys = keys or KeyBuilder()
        self.fail_open = fail_open
        self._flights = SingleFlight()

    async def fetch(self, resource_key: str) -> FetchResult:
        """
        Return a resource from cache, or from upstream on a miss.

        Args:
            resource_key: Resource identifier (e.g., "character/1")

        Returns:
            FetchResult(payload, served_from_cache)

        Raises:
            UpstreamError: If the upstream fetch fails (never cached)
            StoreError: If the cache read fails and fail_open is False

        Example:
            >>> result = await gateway.fetch("character")
            >>> result.served_from_cache
            False
        """
        cached = await self._read(resource_key)

        if cached is not None:
            logger.info("cache_hit", resource_key=resource_key, size=len(cached))
            return FetchResult(cached, True)

        logger.info("cache_miss_fetching", resource_key=resource_key)

        payload, shared = await self._flights.do(
            resource_key, lambda: self._fill(resource_key)
        )

        if shared:
            logger.info("cache_miss_coalesced", resource_key=resource_key)

        return FetchResult(payload, False)

    async def _read(self, resource_key: str) -> bytes | None:
        key = self.keys.cache_key(resource_key)

        try:
            return await self.store.get(key)

        except StoreError as e:
            if not self.fail_open:
                raise

            logger.warning(
                "cache_read_failed_treating_as_miss",
                key=key,
                error=str(e),
            )
            return None

    async def _fill(self, resource_key: str) -> bytes:
        # UpstreamError propagates to every waiter; nothing is written.
        payload = await self.upstream.fetch(resource_key)

        key = self.keys.cache_key(resource_key)
        try:
            await self.store.set(key, payload, self.ttl)
            logger.debug("cache_set", key=key, ttl=self.ttl, size=len(payload))

        except StoreError as e:
            logger.warning("cache_write_failed", key=key, ttl=self.ttl, error=str(e))

        return payload
