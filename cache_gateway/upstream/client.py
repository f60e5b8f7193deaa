"""
Upstream data API client using httpx.

Resource keys double as paths relative to the configured base URL, so
"character/1" is fetched from "{api_url}character/1". The response body
is returned verbatim; the gateway never reshapes it.
"""

from typing import Optional

import httpx
import structlog

from cache_gateway.upstream.exceptions import UpstreamError

logger = structlog.get_logger(__name__)


class UpstreamClient:
    """
    Read-only client for the remote data API.

    Attributes:
        base_url: Base URL every resource key is resolved against
        timeout: Request timeout in seconds

    Example:
        >>> client = UpstreamClient("https://rickandmortyapi.com/api/")
        >>> payload = await client.fetch("character/1")
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the upstream client.

        Args:
            base_url: Base URL of the data API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the upstream)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

        logger.info("upstream_client_initialized", base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "UpstreamClient":
        """Build a client from application settings."""
        return cls(settings.api_url, timeout=settings.upstream_timeout_seconds)

    async def fetch(self, resource_key: str) -> bytes:
        """
        Fetch a resource from the upstream API.

        Args:
            resource_key: Resource path relative to the base URL

        Returns:
            Raw response body

        Raises:
            UpstreamError: On a non-2xx status (status_code set) or a
                transport failure (status_code None)
        """
        try:
            response = await self._client.get(resource_key)

        except httpx.TimeoutException as e:
            logger.error("upstream_timeout", resource_key=resource_key, timeout=self.timeout)
            raise UpstreamError(
                f"Upstream request timed out after {self.timeout}s"
            ) from e

        except httpx.HTTPError as e:
            logger.error(
                "upstream_transport_error",
                resource_key=resource_key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamError(f"Upstream request failed: {e}") from e

        if response.is_success:
            logger.debug(
                "upstream_fetch_success",
                resource_key=resource_key,
                status_code=response.status_code,
                size=len(response.content),
            )
            return response.content

        message = _error_message(response)
        logger.warning(
            "upstream_error_status",
            resource_key=resource_key,
            status_code=response.status_code,
            message=message,
        )
        raise UpstreamError(message, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()
        logger.info("upstream_client_closed")


def _error_message(response: httpx.Response) -> str:
    # The Rick and Morty API reports failures as {"error": "..."}.
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]

    return f"Upstream returned {response.status_code} {response.reason_phrase}".strip()
