"""Key layout for cache entries and rate-limit counters.

Keys follow two shapes inside the store:
- cache entries: ``{resource_key}``
- rate counters: ``rate:{client_identity}``

An optional namespace is prepended to both (``{namespace}:...``) so that
several deployments can share one store without colliding.
"""

from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class KeyBuilder:
    """
    Build store keys for resources and client counters.

    Attributes:
        RATE_PREFIX: Prefix for rate-limit counter keys
        namespace: Optional per-deployment prefix ("" for none)
    """

    RATE_PREFIX = "rate"

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace.strip(":")

    def _namespaced(self, key: str) -> str:
        if self.namespace:
            return f"{self.namespace}:{key}"
        return key

    def cache_key(self, resource_key: str) -> str:
        """
        Return the store key for a cached resource.

        Example:
            >>> KeyBuilder().cache_key("character/1")
            'character/1'
            >>> KeyBuilder("staging").cache_key("character")
            'staging:character'
        """
        return self._namespaced(resource_key)

    def rate_key(self, client_identity: str) -> str:
        """
        Return the store key for a client's rate-limit counter.

        Example:
            >>> KeyBuilder().rate_key("1.2.3.4")
            'rate:1.2.3.4'
        """
        return self._namespaced(f"{self.RATE_PREFIX}:{client_identity}")


def resource_key(collection: str, item_id: Optional[str] = None) -> str:
    """
    Map a collection (and optional item identifier) to a resource key.

    The resource key doubles as the upstream path relative to the API base URL.

    Args:
        collection: Collection name (e.g., "character")
        item_id: Optional item identifier

    Returns:
        "collection" or "collection/item_id"

    Example:
        >>> resource_key("character", "42")
        'character/42'
    """
    if item_id is None:
        return collection
    return f"{collection}/{item_id}"
