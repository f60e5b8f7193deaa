"""
Exceptions raised by the key-value store layer.

A StoreError means Redis was unreachable or answered with a protocol
error. Callers decide at each call site whether to degrade (cache miss,
fail-open admission) or to propagate.
"""

from typing import Optional

from cache_gateway.exceptions import GatewayError


class StoreError(GatewayError):
    """
    Raised when a key-value store operation fails.

    Attributes:
        operation: Store operation that failed (e.g., "get", "incr")
        key: Key involved in the failed operation, if any

    Example:
        >>> raise StoreError("Connection refused", operation="get", key="character")
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        """
        Initialize StoreError.

        Args:
            message: Error description
            operation: Store operation that failed
            key: Key involved in the failed operation
        """
        self.operation = operation
        self.key = key
        super().__init__(message, status_code=500)

    def __str__(self) -> str:
        """Return message with the failed operation, when known."""
        if self.operation:
            return f"{self.message} (operation: {self.operation})"
        return self.message
