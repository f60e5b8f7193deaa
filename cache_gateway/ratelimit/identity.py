"""Client identity derivation for rate limiting.

The identity is the first address of the X-Forwarded-For header when the
gateway runs behind a trusted reverse proxy, else the transport peer
address. The header is client-controlled: trusting it is only sound when
a proxy in front of the gateway overwrites it.
"""

import ipaddress
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

FORWARDED_FOR_HEADER = "x-forwarded-for"
UNKNOWN_CLIENT = "unknown"


def _parse_address(value: str) -> Optional[str]:
    """Return the normalized IP address in value, or None if malformed."""
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def client_identity(
    forwarded_for: Optional[str],
    peer_address: Optional[str],
    trust_forwarded_for: bool = True,
) -> str:
    """
    Derive the rate-limit identity for a request.

    Malformed forwarded addresses are ignored rather than used as store
    keys, so arbitrary header content never reaches the key space.

    Args:
        forwarded_for: Raw X-Forwarded-For header value, if any
        peer_address: Transport-level peer address, if known
        trust_forwarded_for: Whether to honor the forwarded header at all

    Returns:
        Normalized client address, or "unknown" if none is usable

    Example:
        >>> client_identity("1.2.3.4, 10.0.0.1", "10.0.0.1")
        '1.2.3.4'
        >>> client_identity(None, "127.0.0.1")
        '127.0.0.1'
    """
    if trust_forwarded_for and forwarded_for:
        first = forwarded_for.split(",")[0]
        address = _parse_address(first)

        if address is not None:
            return address

        logger.warning("forwarded_for_malformed", value=forwarded_for[:64])

    if peer_address:
        # Test transports report non-IP peers (e.g. "testclient"); keep them as-is.
        return _parse_address(peer_address) or peer_address

    return UNKNOWN_CLIENT
