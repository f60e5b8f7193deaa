"""Exceptions raised while talking to the upstream data API."""

from typing import Optional

from cache_gateway.exceptions import GatewayError


class UpstreamError(GatewayError):
    """
    Raised when the upstream data API cannot provide a resource.

    This occurs when:
    - The upstream answers with a non-2xx status (status_code is set)
    - The request fails at the transport level (status_code is None)

    Upstream errors are never retried and never cached.

    Example:
        >>> raise UpstreamError("Character not found", status_code=404)
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        """
        Initialize UpstreamError.

        Args:
            message: Error description
            status_code: Upstream HTTP status, or None for transport failures
        """
        super().__init__(message, status_code=status_code)

    @property
    def http_status(self) -> int:
        """Status to mirror to the client (500 when the upstream gave none)."""
        return self.status_code or 500

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.message} (transport failure)"
        return f"{self.message} (status {self.status_code})"
