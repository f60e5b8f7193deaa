"""
Structured logging configuration using structlog.

Provides JSON-formatted logging with context processors for
request tracking, timestamps, and log levels.
"""
import logging
import sys

import structlog


def setup_logging(level: str = "INFO", environment: str = "production") -> None:
    """
    Configure structured logging with structlog.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: "development" selects colored console output,
            anything else JSON output

    Sets up:
        - JSON output format for production
        - Console output with colors for development
        - Context processors for timestamps and metadata
        - Integration with standard library logging (uvicorn, httpx)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    is_dev = environment == "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("request_served", path="/character", cached=True)
    """
    return structlog.get_logger(name)


def log_request(
    path: str,
    status_code: int,
    duration_ms: float,
    cached: bool | None = None,
    **extra,
) -> None:
    """
    Log a completed request in structured format.

    Args:
        path: Request path
        status_code: Response status code
        duration_ms: Handling time in milliseconds
        cached: Whether the payload came from cache (None if not applicable)
        **extra: Additional context to log
    """
    logger = get_logger("request")

    log_data = {
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
        "cached": cached,
        **extra,
    }

    if status_code >= 500:
        logger.error("request_failed", **log_data)
    elif status_code >= 400:
        logger.warning("request_rejected", **log_data)
    else:
        logger.info("request_served", **log_data)
