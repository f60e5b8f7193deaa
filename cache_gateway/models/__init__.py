"""Response models."""

from cache_gateway.models.responses import (
    ErrorResponse,
    HealthCheckResponse,
    RateLimitedResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthCheckResponse",
    "RateLimitedResponse",
]
