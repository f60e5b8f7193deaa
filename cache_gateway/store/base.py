"""Key-value store interface shared by the cache gateway and the rate limiter.

Both consumers depend on this abstraction rather than on Redis directly,
so the store handle can be injected (and replaced in tests).
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStore(ABC):
    """
    Network-accessible key-value store with per-key expiration.

    Implementations raise StoreError for any failure to reach the store
    or any protocol error it reports. They never delete keys on their own;
    entries disappear only through TTL expiry.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection (pool) to the store."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection (pool) to the store."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the store answers, False otherwise. Never raises."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under key, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store value under key, expiring ttl seconds from now."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment the integer at key and return the new value."""

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> None:
        """Set the expiry of key to ttl seconds from now."""

    async def incr_with_expiry(self, key: str, ttl: int) -> int:
        """
        Increment key and arm its expiry when this increment created it.

        The default is the two-step sequence INCR then EXPIRE. Between the
        two calls the key exists without a TTL; if the process dies or the
        EXPIRE fails in that gap the counter never expires. Stores with a
        server-side atomic primitive override this.

        Args:
            key: Counter key
            ttl: Expiry in seconds, applied only when the count becomes 1

        Returns:
            Post-increment count
        """
        count = await self.incr(key)

        if count == 1:
            await self.expire(key, ttl)
            logger.debug("counter_expiry_armed", key=key, ttl=ttl, atomic=False)

        return count
