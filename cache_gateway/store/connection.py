"""Redis-backed key-value store with connection pooling.

This module provides the RedisStore class. The store is constructed
explicitly and handed to the cache gateway and the rate limiter; its
lifecycle is driven by connect() and close() from the application
lifespan. Every Redis failure is translated into StoreError so callers
can decide how to degrade.
"""

from typing import Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import NoPermissionError, RedisError, ResponseError

import structlog

from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.exceptions import StoreError

logger = structlog.get_logger(__name__)

# INCR, and arm the expiry only when this increment created the key.
INCR_WITH_EXPIRY_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""

# Error fragments Redis returns when EVAL/EVALSHA are unavailable or denied.
_SCRIPTING_UNAVAILABLE = ("unknown command", "not allowed", "disabled", "no permissions")


class RedisStore(KeyValueStore):
    """
    Redis key-value store with connection pooling.

    Attributes:
        pool: Redis connection pool (None until connect())
        client: Redis client instance (None until connect())
        scripting_available: False once the server has refused EVALSHA

    Example:
        >>> store = RedisStore(host="localhost", port=6379)
        >>> await store.connect()
        >>> await store.set("character", b"{}", ttl=10)
        >>> await store.close()
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        db: int = 0,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
    ) -> None:
        self.host = host
        self.port = port
        self.password = password
        self.db = db
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout

        self.pool: Optional[ConnectionPool] = None
        self.client: Optional[redis.Redis] = None
        self.scripting_available = True
        self._incr_script = None

    @classmethod
    def from_settings(cls, settings) -> "RedisStore":
        """Build a store from application settings."""
        return cls(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
        )

    async def connect(self) -> None:
        """
        Create the connection pool and check that Redis answers.

        An unreachable server is logged, not raised: connections are opened
        lazily by the pool, so the store recovers once Redis comes back.
        """
        if self.client is not None:
            return

        self.pool = ConnectionPool(
            host=self.host,
            port=self.port,
            password=self.password,
            db=self.db,
            max_connections=self.max_connections,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
            retry_on_timeout=True,
        )
        self.client = redis.Redis(connection_pool=self.pool)
        self._incr_script = self.client.register_script(INCR_WITH_EXPIRY_SCRIPT)

        logger.info(
            "redis_pool_initialized",
            host=self.host,
            port=self.port,
            db=self.db,
            max_connections=self.max_connections,
        )

        if not await self.ping():
            logger.warning("redis_unreachable_at_startup", host=self.host, port=self.port)

    async def close(self) -> None:
        """
        Close the Redis client and disconnect the pool.

        Should be called during application shutdown.
        """
        try:
            if self.client is not None:
                await self.client.aclose()
                logger.info("redis_client_closed")

            if self.pool is not None:
                await self.pool.disconnect()
                logger.info("redis_pool_disconnected")

        except RedisError as e:
            logger.error(
                "redis_close_error",
                error=str(e),
                error_type=type(e).__name__,
            )

        finally:
            self.client = None
            self.pool = None
            self._incr_script = None

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is healthy, False otherwise
        """
        if self.client is None:
            logger.warning("redis_ping_failed", reason="client_not_initialized")
            return False

        try:
            result = await self.client.ping()
            logger.debug("redis_ping_success", result=result)
            return bool(result)

        except RedisError as e:
            logger.error(
                "redis_ping_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def _require_client(self, operation: str, key: str) -> redis.Redis:
        if self.client is None:
            raise StoreError("Redis client not connected", operation=operation, key=key)
        return self.client

    async def get(self, key: str) -> Optional[bytes]:
        client = self._require_client("get", key)

        try:
            return await client.get(key)
        except RedisError as e:
            raise StoreError(str(e), operation="get", key=key) from e

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        client = self._require_client("set", key)

        try:
            await client.set(key, value, ex=ttl)
        except RedisError as e:
            raise StoreError(str(e), operation="set", key=key) from e

    async def incr(self, key: str) -> int:
        client = self._require_client("incr", key)

        try:
            return int(await client.incr(key))
        except RedisError as e:
            raise StoreError(str(e), operation="incr", key=key) from e

    async def expire(self, key: str, ttl: int) -> None:
        client = self._require_client("expire", key)

        try:
            await client.expire(key, ttl)
        except RedisError as e:
            raise StoreError(str(e), operation="expire", key=key) from e

    async def incr_with_expiry(self, key: str, ttl: int) -> int:
        """
        Increment key and arm its expiry on creation, atomically.

        Runs a Lua script so the counter is never visible without a TTL.
        If the server refuses scripting (some managed Redis offerings do),
        falls back to the two-step INCR/EXPIRE for the rest of the process
        lifetime and logs the residual race once.

        Args:
            key: Counter key
            ttl: Expiry in seconds, applied only when the count becomes 1

        Returns:
            Post-increment count

        Raises:
            StoreError: If Redis is unreachable or rejects the increment
        """
        self._require_client("incr_with_expiry", key)

        if not self.scripting_available:
            return await super().incr_with_expiry(key, ttl)

        try:
            count = await self._incr_script(keys=[key], args=[ttl])
            return int(count)

        except ResponseError as e:
            refused = isinstance(e, NoPermissionError) or any(
                fragment in str(e).lower() for fragment in _SCRIPTING_UNAVAILABLE
            )
            if not refused:
                raise StoreError(str(e), operation="incr_with_expiry", key=key) from e

            self.scripting_available = False
            logger.warning(
                "redis_scripting_unavailable",
                error=str(e),
                fallback="incr_then_expire",
                race="counter may persist without TTL if the process dies between INCR and EXPIRE",
            )
            return await super().incr_with_expiry(key, ttl)

        except RedisError as e:
            raise StoreError(str(e), operation="incr_with_expiry", key=key) from e
