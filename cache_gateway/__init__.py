"""Caching, rate-limited gateway in front of a read-only data API."""

__version__ = "1.0.0"
