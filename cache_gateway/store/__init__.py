"""Key-value store layer shared by caching and rate limiting.

This package provides:
- The KeyValueStore interface
- RedisStore (connection pooling, atomic increment-with-expiry)
- Key layout (KeyBuilder, resource_key)
- StoreError
"""

from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.connection import RedisStore
from cache_gateway.store.exceptions import StoreError
from cache_gateway.store.keys import KeyBuilder, resource_key

__all__ = [
    "KeyValueStore",
    "RedisStore",
    "StoreError",
    "KeyBuilder",
    "resource_key",
]
