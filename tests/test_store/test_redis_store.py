"""Unit tests for the Redis-backed store."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import NoPermissionError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from cache_gateway.config import Settings
from cache_gateway.ratelimit.limiter import FixedWindowRateLimiter
from cache_gateway.store.connection import INCR_WITH_EXPIRY_SCRIPT, RedisStore
from cache_gateway.store.exceptions import StoreError


class TestRedisStore:
    """Test suite for RedisStore class."""

    @pytest.fixture
    def mock_redis(self):
        """Create a mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.set = AsyncMock(return_value=True)
        mock.incr = AsyncMock(return_value=1)
        mock.expire = AsyncMock(return_value=True)
        mock.ping = AsyncMock(return_value=True)
        return mock

    @pytest.fixture
    def redis_store(self, mock_redis):
        """Create RedisStore with mocked Redis client and script."""
        store = RedisStore()
        store.client = mock_redis
        store._incr_script = AsyncMock(return_value=1)
        return store

    def test_from_settings(self):
        """Test store picks up connection settings."""
        settings = Settings(redis_host="cache.internal", redis_port=6380, redis_password="s3cret")

        store = RedisStore.from_settings(settings)

        assert store.host == "cache.internal"
        assert store.port == 6380
        assert store.password == "s3cret"
        assert store.client is None

    @pytest.mark.asyncio
    async def test_connect_builds_pool_and_registers_script(self, mock_redis):
        """Test connect() creates the client and registers the Lua script."""
        store = RedisStore(host="localhost", port=6379)
        mock_redis.register_script = MagicMock(return_value=AsyncMock())

        with patch("cache_gateway.store.connection.redis.Redis", return_value=mock_redis):
            await store.connect()

        assert store.client is mock_redis
        assert store.pool is not None
        mock_redis.register_script.assert_called_once_with(INCR_WITH_EXPIRY_SCRIPT)
        mock_redis.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_survives_unreachable_redis(self, mock_redis):
        """Test connect() logs but does not raise when the ping fails."""
        store = RedisStore()
        mock_redis.register_script = MagicMock(return_value=AsyncMock())
        mock_redis.ping.side_effect = RedisConnectionError("Connection refused")

        with patch("cache_gateway.store.connection.redis.Redis", return_value=mock_redis):
            await store.connect()

        assert store.client is mock_redis

    @pytest.mark.asyncio
    async def test_close_resets_client(self, redis_store, mock_redis):
        """Test close() releases the client and pool."""
        redis_store.pool = AsyncMock()

        await redis_store.close()

        mock_redis.aclose.assert_awaited_once()
        assert redis_store.client is None
        assert redis_store.pool is None

    @pytest.mark.asyncio
    async def test_ping_without_client(self):
        """Test ping() returns False before connect()."""
        assert await RedisStore().ping() is False

    @pytest.mark.asyncio
    async def test_ping_failure(self, redis_store, mock_redis):
        """Test ping() returns False when Redis errors."""
        mock_redis.ping.side_effect = RedisTimeoutError("timed out")

        assert await redis_store.ping() is False

    @pytest.mark.asyncio
    async def test_get_returns_bytes(self, redis_store, mock_redis):
        """Test get() returns the stored payload."""
        mock_redis.get.return_value = b'{"results": []}'

        result = await redis_store.get("character")

        assert result == b'{"results": []}'
        mock_redis.get.assert_awaited_once_with("character")

    @pytest.mark.asyncio
    async def test_get_miss(self, redis_store, mock_redis):
        """Test get() returns None for absent keys."""
        assert await redis_store.get("character/999") is None

    @pytest.mark.asyncio
    async def test_get_error_raises_store_error(self, redis_store, mock_redis):
        """Test get() wraps Redis failures in StoreError."""
        mock_redis.get.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(StoreError) as exc_info:
            await redis_store.get("character")

        assert exc_info.value.operation == "get"
        assert exc_info.value.key == "character"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_operations_before_connect_raise(self):
        """Test operations on an unconnected store raise StoreError."""
        store = RedisStore()

        with pytest.raises(StoreError):
            await store.get("character")
        with pytest.raises(StoreError):
            await store.incr_with_expiry("rate:1.2.3.4", 60)

    @pytest.mark.asyncio
    async def test_set_uses_expiry(self, redis_store, mock_redis):
        """Test set() writes with an EX expiry."""
        await redis_store.set("character", b"{}", ttl=10)

        mock_redis.set.assert_awaited_once_with("character", b"{}", ex=10)

    @pytest.mark.asyncio
    async def test_set_error_raises_store_error(self, redis_store, mock_redis):
        """Test set() wraps Redis failures in StoreError."""
        mock_redis.set.side_effect = RedisConnectionError("Connection reset")

        with pytest.raises(StoreError) as exc_info:
            await redis_store.set("character", b"{}", ttl=10)

        assert exc_info.value.operation == "set"

    @pytest.mark.asyncio
    async def test_incr_with_expiry_runs_script(self, redis_store, mock_redis):
        """Test incr_with_expiry() uses the atomic script."""
        redis_store._incr_script.return_value = 3

        count = await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)

        assert count == 3
        redis_store._incr_script.assert_awaited_once_with(keys=["rate:1.2.3.4"], args=[3600])
        mock_redis.incr.assert_not_called()
        mock_redis.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_incr_with_expiry_falls_back_without_scripting(self, redis_store, mock_redis):
        """Test two-step fallback when the server refuses EVALSHA."""
        redis_store._incr_script.side_effect = ResponseError("unknown command 'EVALSHA'")
        mock_redis.incr.return_value = 1

        count = await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)

        assert count == 1
        assert redis_store.scripting_available is False
        mock_redis.incr.assert_awaited_once_with("rate:1.2.3.4")
        mock_redis.expire.assert_awaited_once_with("rate:1.2.3.4", 3600)

    @pytest.mark.asyncio
    async def test_incr_with_expiry_falls_back_when_acl_denies_scripting(
        self, redis_store, mock_redis
    ):
        """Test two-step fallback when an ACL forbids EVALSHA."""
        redis_store._incr_script.side_effect = NoPermissionError(
            "this user has no permissions to run the 'evalsha' command or its subcommand"
        )
        mock_redis.incr.return_value = 1

        count = await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)

        assert count == 1
        assert redis_store.scripting_available is False
        mock_redis.incr.assert_awaited_once_with("rate:1.2.3.4")
        mock_redis.expire.assert_awaited_once_with("rate:1.2.3.4", 3600)

    @pytest.mark.asyncio
    async def test_limiter_enforces_limit_when_acl_denies_scripting(
        self, redis_store, mock_redis
    ):
        """Test the limiter still rejects over-limit clients after an ACL refusal."""
        redis_store._incr_script.side_effect = NoPermissionError(
            "this user has no permissions to run the 'evalsha' command or its subcommand"
        )
        mock_redis.incr.side_effect = [1, 2, 3]
        limiter = FixedWindowRateLimiter(redis_store, max_requests=2, window_seconds=60)

        decisions = [await limiter.admit("1.2.3.4") for _ in range(3)]

        assert [d.allowed for d in decisions] == [True, True, False]
        assert not any(d.degraded for d in decisions)
        assert decisions[-1].current_count == 3
        redis_store._incr_script.assert_awaited_once()
        mock_redis.expire.assert_awaited_once_with("rate:1.2.3.4", 60)

    @pytest.mark.asyncio
    async def test_fallback_does_not_rearm_expiry(self, redis_store, mock_redis):
        """Test fallback only arms the TTL on the creating increment."""
        redis_store.scripting_available = False
        mock_redis.incr.return_value = 5

        count = await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)

        assert count == 5
        redis_store._incr_script.assert_not_called()
        mock_redis.expire.assert_not_called()

    @pytest.mark.asyncio
    async def test_incr_with_expiry_other_response_error(self, redis_store):
        """Test non-scripting protocol errors raise StoreError without fallback."""
        redis_store._incr_script.side_effect = ResponseError(
            "WRONGTYPE Operation against a key holding the wrong kind of value"
        )

        with pytest.raises(StoreError) as exc_info:
            await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)

        assert exc_info.value.operation == "incr_with_expiry"
        assert redis_store.scripting_available is True

    @pytest.mark.asyncio
    async def test_incr_with_expiry_connection_error(self, redis_store):
        """Test connection failures raise StoreError."""
        redis_store._incr_script.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(StoreError):
            await redis_store.incr_with_expiry("rate:1.2.3.4", 3600)
