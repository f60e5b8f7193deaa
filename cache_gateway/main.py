"""
Gateway - Main Entry Point

Configures logging and runs the FastAPI application under uvicorn.
Redis and the upstream client are connected and closed by the
application lifespan.
"""
import asyncio

import uvicorn

from cache_gateway.config import Settings
from cache_gateway.server import SERVER_VERSION, create_app
from cache_gateway.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def main() -> None:
    """
    Main entry point.

    Initializes:
        1. Settings from the environment
        2. Structured logging
        3. The FastAPI application (store, upstream, limiter, gateway)
        4. The uvicorn server (handles SIGINT/SIGTERM)
    """
    settings = Settings()
    setup_logging(level=settings.log_level, environment=settings.environment)

    logger.info(
        "server_starting",
        version=SERVER_VERSION,
        environment=settings.environment,
        log_level=settings.log_level,
        port=settings.port,
    )

    app = create_app(settings)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )
    server = uvicorn.Server(config)

    try:
        await server.serve()
    except Exception as e:
        logger.error(
            "server_error",
            error=str(e),
            exc_info=True,
        )
        raise
    finally:
        logger.info("server_shutdown_complete")


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
