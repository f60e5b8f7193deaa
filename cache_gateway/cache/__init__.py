"""Cache-aside retrieval of upstream resources.

This package provides:
- CacheGateway: read-through cache over the key-value store
- FetchResult: payload plus served-from-cache flag
- SingleFlight: de-duplication of concurrent misses
"""

from cache_gateway.cache.gateway import CacheGateway, FetchResult
from cache_gateway.cache.singleflight import SingleFlight

__all__ = [
    "CacheGateway",
    "FetchResult",
    "SingleFlight",
]
