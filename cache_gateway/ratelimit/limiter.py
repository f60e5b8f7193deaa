"""
Fixed-window rate limiter backed by the shared key-value store.

Each client identity gets a counter key that is incremented on every
request and expires one window after the request that created it. The
limiter fails open: if the store cannot be reached, requests are admitted.
"""

from dataclasses import dataclass

import structlog

from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.exceptions import StoreError
from cache_gateway.store.keys import KeyBuilder

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Decision:
    """
    Outcome of an admission check.

    Attributes:
        allowed: Whether the request may proceed
        current_count: Post-increment count in the current window (0 if degraded)
        limit: Max requests per window
        degraded: True when the store was unavailable and the request was
            admitted without being counted
    """

    allowed: bool
    current_count: int
    limit: int
    degraded: bool = False

    @property
    def remaining(self) -> int:
        """Requests left in the current window (never negative)."""
        return max(0, self.limit - self.current_count)


class FixedWindowRateLimiter:
    """
    Fixed-window request counter per client identity.

    Attributes:
        store: Injected key-value store
        max_requests: Requests admitted per window
        window_seconds: Window length in seconds

    Example:
        >>> limiter = FixedWindowRateLimiter(store, max_requests=20, window_seconds=3600)
        >>> decision = await limiter.admit("1.2.3.4")
        >>> decision.allowed
        True
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_requests: int = 20,
        window_seconds: int = 3600,
        keys: KeyBuilder | None = None,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.keys = keys or KeyBuilder()

        logger.info(
            "rate_limiter_initialized",
            max_requests=max_requests,
            window_seconds=window_seconds,
        )

    async def admit(self, client_identity: str) -> Decision:
        """
        Count a request for client_identity and decide whether to admit it.

        The counter's expiry is armed once, by the increment that creates
        the counter; later increments in the same window leave it alone.

        Args:
            client_identity: Client address used as the counter identity

        Returns:
            Decision; never raises on store failure (fails open)
        """
        key = self.keys.rate_key(client_identity)

        try:
            count = await self.store.incr_with_expiry(key, self.window_seconds)

        except StoreError as e:
            logger.warning(
                "rate_limit_store_unavailable",
                key=key,
                error=str(e),
                action="admit",
            )
            return Decision(
                allowed=True,
                current_count=0,
                limit=self.max_requests,
                degraded=True,
            )

        decision = Decision(
            allowed=count <= self.max_requests,
            current_count=count,
            limit=self.max_requests,
        )

        if decision.allowed:
            logger.debug(
                "rate_limit_admitted",
                key=key,
                count=count,
                remaining=decision.remaining,
            )

            # Log warning when approaching limit (>90% used)
            if count > self.max_requests * 0.9:
                logger.warning(
                    "rate_limit_approaching",
                    key=key,
                    count=count,
                    max_requests=self.max_requests,
                )
        else:
            logger.warning(
                "rate_limit_exceeded",
                key=key,
                count=count,
                max_requests=self.max_requests,
                window_seconds=self.window_seconds,
            )

        return decision
