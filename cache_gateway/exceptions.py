"""
Base exceptions for the gateway.

GatewayError is the root of the hierarchy. Hard failures (UpstreamError)
are always surfaced to the client; soft failures (StoreError) are degraded
by the caller. The concrete classes live next to the layer that raises them.
"""

from typing import Optional


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Use this for catching any error raised by the gateway itself.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        """
        Initialize GatewayError.

        Args:
            message: Error description
            status_code: Optional HTTP status code associated with the error
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ClientError(GatewayError):
    """
    Raised when an inbound request is malformed.

    Example:
        >>> raise ClientError("Character id must be numeric")
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)
