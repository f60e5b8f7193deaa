"""
FastAPI application: routing, error rendering and lifecycle.

Every resource request is first counted by the rate limiter and, only
if admitted, served through the cache gateway. The store handle and the
upstream client are built once per application and injected into both.
"""
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from cache_gateway import __version__
from cache_gateway.cache.gateway import CacheGateway
from cache_gateway.config import Settings
from cache_gateway.exceptions import ClientError, GatewayError
from cache_gateway.models.responses import (
    ErrorResponse,
    HealthCheckResponse,
    RateLimitedResponse,
)
from cache_gateway.ratelimit.identity import FORWARDED_FOR_HEADER, client_identity
from cache_gateway.ratelimit.limiter import Decision, FixedWindowRateLimiter
from cache_gateway.store.base import KeyValueStore
from cache_gateway.store.connection import RedisStore
from cache_gateway.store.exceptions import StoreError
from cache_gateway.store.keys import KeyBuilder, resource_key
from cache_gateway.upstream.client import UpstreamClient
from cache_gateway.upstream.exceptions import UpstreamError
from cache_gateway.utils.logger import get_logger, log_request

logger = get_logger(__name__)

# Server metadata
SERVER_NAME = "rickmorty-cache-gateway"
SERVER_VERSION = __version__
SERVER_DESCRIPTION = "Caching, rate-limited gateway for the Rick and Morty API"

COLLECTION = "character"

router = APIRouter()


@router.get("/character")
async def list_characters(request: Request) -> Response:
    """Serve the character collection."""
    return await serve_resource(request, COLLECTION)


@router.get("/character/{item_id}")
async def get_character(request: Request, item_id: str) -> Response:
    """Serve a single character by numeric id."""
    return await serve_resource(request, COLLECTION, item_id)


async def serve_resource(
    request: Request, collection: str, item_id: Optional[str] = None
) -> Response:
    """
    Admit the request, then answer it from cache or upstream.

    Malformed identifiers are rejected only after the request is counted,
    so they still consume the client's budget.

    Raises:
        ClientError: If item_id is not a decimal number
        UpstreamError: If the upstream cannot provide the resource
        StoreError: If the cache read fails and cache_fail_open is off
    """
    state = request.app.state
    settings: Settings = state.settings

    identity = client_identity(
        request.headers.get(FORWARDED_FOR_HEADER),
        request.client.host if request.client else None,
        trust_forwarded_for=settings.trust_forwarded_for,
    )
    structlog.contextvars.bind_contextvars(client_identity=identity)

    decision = await state.limiter.admit(identity)
    headers = _rate_limit_headers(decision)

    if not decision.allowed:
        body = RateLimitedResponse(
            status=settings.rate_limit_status_code,
            request_count=decision.current_count,
            message=(
                f"Too many requests: limit is {decision.limit} "
                f"per {settings.rate_limit_window_seconds} seconds"
            ),
        )
        return JSONResponse(
            status_code=settings.rate_limit_status_code,
            content=body.model_dump(by_alias=True),
            headers=headers,
        )

    if item_id is not None and not (item_id.isascii() and item_id.isdigit()):
        raise ClientError(f"Invalid {collection} id: {item_id!r}")

    result = await state.gateway.fetch(resource_key(collection, item_id))

    headers["X-Cache"] = "HIT" if result.served_from_cache else "MISS"
    return Response(
        content=result.payload,
        media_type="application/json",
        headers=headers,
    )


def _rate_limit_headers(decision: Decision) -> dict[str, str]:
    if decision.degraded:
        return {}
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }


def _error_response(message: str, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=message, status_code=status_code)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


def setup_error_handling(app: FastAPI) -> None:
    """
    Register exception handlers rendering gateway errors as JSON.

    Status mapping:
        UpstreamError: mirrored upstream status, 500 for transport failures
        StoreError: 500
        ClientError: 400
        other GatewayError: its status_code, else 500
    """

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, error: UpstreamError) -> JSONResponse:
        logger.error(
            "upstream_error",
            path=request.url.path,
            status_code=error.status_code,
            message=error.message,
        )
        return _error_response(error.message, error.http_status)

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, error: StoreError) -> JSONResponse:
        logger.error(
            "store_error",
            path=request.url.path,
            operation=error.operation,
            message=error.message,
        )
        return _error_response("Cache unavailable", 500)

    @app.exception_handler(ClientError)
    async def handle_client_error(request: Request, error: ClientError) -> JSONResponse:
        logger.warning("client_error", path=request.url.path, message=error.message)
        return _error_response(error.message, 400)

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, error: GatewayError) -> JSONResponse:
        logger.error(
            "gateway_error",
            path=request.url.path,
            error_type=type(error).__name__,
            message=error.message,
        )
        return _error_response(error.message, error.status_code or 500)


def register_health_check(app: FastAPI) -> None:
    """
    Register the health check endpoint.

    Args:
        app: FastAPI application
    """

    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request) -> HealthCheckResponse:
        """
        Report gateway health and Redis reachability.

        The gateway keeps serving when Redis is down (fail-open), so an
        unreachable store yields "degraded" rather than "unhealthy".
        """
        redis_healthy = await request.app.state.store.ping()

        components = {
            "server": "healthy",
            "redis": "healthy" if redis_healthy else "unhealthy",
        }
        overall_status = "healthy" if redis_healthy else "degraded"

        logger.debug("health_check_performed", status=overall_status)

        return HealthCheckResponse(
            status=overall_status,
            version=SERVER_VERSION,
            components=components,
        )


async def response_time_middleware(request: Request, call_next) -> Response:
    """Bind request context for logs and add an X-Response-Time header."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(path=request.url.path)

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    response.headers["X-Response-Time"] = f"{duration_ms:.3f}ms"

    cache_header = response.headers.get("X-Cache")
    log_request(
        request.url.path,
        response.status_code,
        duration_ms,
        cached=None if cache_header is None else cache_header == "HIT",
    )
    return response


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    upstream: Optional[UpstreamClient] = None,
) -> FastAPI:
    """
    Create and configure the gateway application.

    Args:
        settings: Gateway settings (loaded from the environment if omitted)
        store: Key-value store (a RedisStore built from settings if omitted)
        upstream: Upstream client (built from settings if omitted)

    Returns:
        Configured FastAPI application

    Example:
        >>> app = create_app()
        >>> # uvicorn.run(app, port=3000)
    """
    if settings is None:
        settings = Settings()
    if store is None:
        store = RedisStore.from_settings(settings)
    if upstream is None:
        upstream = UpstreamClient.from_settings(settings)

    keys = KeyBuilder(settings.key_namespace)
    limiter = FixedWindowRateLimiter(
        store,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        keys=keys,
    )
    gateway = CacheGateway(
        store,
        upstream,
        ttl=settings.cache_ttl_seconds,
        keys=keys,
        fail_open=settings.cache_fail_open,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.connect()
        logger.info(
            "gateway_started",
            name=SERVER_NAME,
            version=SERVER_VERSION,
            api_url=settings.api_url,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            rate_limit_requests=settings.rate_limit_requests,
            rate_limit_window_seconds=settings.rate_limit_window_seconds,
        )
        try:
            yield
        finally:
            await upstream.close()
            await store.close()
            logger.info("gateway_shutdown_complete")

    app = FastAPI(
        title=SERVER_NAME,
        version=SERVER_VERSION,
        description=SERVER_DESCRIPTION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.upstream = upstream
    app.state.limiter = limiter
    app.state.gateway = gateway

    app.middleware("http")(response_time_middleware)
    setup_error_handling(app)

    app.include_router(router)
    app.include_router(router, prefix="/api")
    register_health_check(app)

    return app
