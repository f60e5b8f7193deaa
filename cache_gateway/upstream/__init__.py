"""
Upstream data API integration.

This package provides:
- UpstreamClient: httpx-based read-only client
- UpstreamError: raised on non-2xx responses and transport failures
"""

from cache_gateway.upstream.client import UpstreamClient
from cache_gateway.upstream.exceptions import UpstreamError

__all__ = [
    "UpstreamClient",
    "UpstreamError",
]
