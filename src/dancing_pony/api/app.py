"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dancing_pony.api.deps import get_token_service
from dancing_pony.api.middleware import RequestIdMiddleware, RequestLoggingMiddleware
from dancing_pony.api.routes.auth import router as auth_router
from dancing_pony.api.routes.dishes import router as dishes_router
from dancing_pony.api.routes.restaurants import router as restaurants_router
from dancing_pony.auth.rate_limiter import InMemoryRateLimiter
from dancing_pony.config import settings
from dancing_pony.errors import DancingPonyError, TooManyRequestsError
from dancing_pony.logging_config import configure_logging
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.database import async_session, engine
from dancing_pony.storage.repositories import PermissionRepository
from dancing_pony.storage.s3 import S3Client

logger = structlog.get_logger()

HEALTH_CHECK_TIMEOUT = 5.0


async def _cleanup_loop(*limiters: InMemoryRateLimiter) -> None:
    """Periodic cleanup of expired rate limit entries."""
    while True:
        await asyncio.sleep(settings.rate_limit_cleanup_interval_seconds)
        for limiter in limiters:
            try:
                cleaned = await asyncio.to_thread(limiter.cleanup)
                if cleaned:
                    logger.debug("rate_limiter_cleanup", keys_removed=cleaned)
            except Exception:
                logger.exception("rate_limiter_cleanup_error")


async def _seed_permissions() -> None:
    async with async_session() as session:
        created = await PermissionRepository(session).seed_defaults()
        await session.commit()
    if created:
        logger.info("permissions_seeded", created=created)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Build the token service; a missing signing key aborts startup.
        - Seed the permission catalogue.
        - Connect the Redis cache and the S3 client.
        - Start rate limiter cleanup task.
    Shutdown:
        - Cancel cleanup task.
        - Close Redis and dispose database engine.
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )
    get_token_service()
    await _seed_permissions()

    cache = ResponseCache(
        Redis.from_url(settings.redis_url),
        ttl_seconds=settings.cache_ttl_seconds,
    )
    app.state.cache = cache

    cleanup_task = asyncio.create_task(
        _cleanup_loop(app.state.user_rate_limiter, app.state.ip_rate_limiter)
    )

    s3 = S3Client(
        endpoint_url=settings.s3_endpoint,
        region=settings.s3_region,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key.get_secret_value(),
        bucket=settings.s3_bucket,
    )
    async with s3:
        await s3.ensure_bucket()
        app.state.s3_client = s3

        logger.info("app_started", environment=str(settings.environment))
        yield

    cleanup_task.cancel()
    await cache.close()
    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="Dancing Pony",
    description="Multi-tenant restaurant menu API",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

# Limiters live for the whole process; the lifespan only sweeps them.
app.state.user_rate_limiter = InMemoryRateLimiter(
    window_seconds=settings.rate_limit_window_seconds,
    max_allowed=settings.rate_limit_max_requests,
)
app.state.ip_rate_limiter = InMemoryRateLimiter(
    window_seconds=settings.rate_limit_window_seconds,
    max_allowed=settings.rate_limit_max_requests,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
    expose_headers=["X-Request-ID", "Retry-After"],
)


async def _ping_database() -> None:
    async with async_session() as session:
        await session.execute(text("SELECT 1"))


async def _ping_cache() -> None:
    cache: ResponseCache = app.state.cache
    await cache.ping()


async def _ping_storage() -> None:
    s3_client: S3Client = app.state.s3_client
    await s3_client.check_connectivity()


# name -> (probe, errors that mark the dependency as down)
HEALTH_PROBES: dict[
    str, tuple[Callable[[], Awaitable[None]], tuple[type[BaseException], ...]]
] = {
    "db": (_ping_database, (SQLAlchemyError, OSError)),
    "redis": (_ping_cache, (RedisError, OSError)),
    "s3": (_ping_storage, (ClientError, BotoCoreError)),
}


@app.get("/health")
async def health() -> JSONResponse:
    """Deep health check: 200 when DB, Redis and S3 all answer, else 503."""
    checks: dict[str, str] = {}
    for name, (probe, errors) in HEALTH_PROBES.items():
        try:
            await asyncio.wait_for(probe(), timeout=HEALTH_CHECK_TIMEOUT)
        except (TimeoutError, *errors) as e:
            logger.warning(
                "health_check_failed", dependency=name, error=type(e).__name__
            )
            checks[name] = f"error: {type(e).__name__}"
        else:
            checks[name] = "ok"

    healthy = all(state == "ok" for state in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
        },
    )


@app.exception_handler(DancingPonyError)
async def domain_error_handler(
    request: Request,
    exc: DancingPonyError,
) -> JSONResponse:
    """Render domain errors into the ``{"error": ...}`` envelope."""
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=exc,
        )
    else:
        logger.info(
            "request_rejected",
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            path=request.url.path,
        )
    headers = None
    if isinstance(exc, TooManyRequestsError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Validation failures are 400 Malformed, naming the first bad field."""
    errors = exc.errors()
    message = "Malformed request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    logger.info("request_malformed", path=request.url.path, num_errors=len(errors))
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


app.include_router(auth_router, prefix="/api")
app.include_router(restaurants_router, prefix="/api")
app.include_router(dishes_router, prefix="/api")
