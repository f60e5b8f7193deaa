"""Per-client fixed-window rate limiting."""

from cache_gateway.ratelimit.identity import client_identity
from cache_gateway.ratelimit.limiter import Decision, FixedWindowRateLimiter

__all__ = [
    "Decision",
    "FixedWindowRateLimiter",
    "client_identity",
]
