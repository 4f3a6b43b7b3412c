"""FastAPI dependency injection."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import cast

from fastapi import Request

from dancing_pony.auth.rate_limiter import InMemoryRateLimiter
from dancing_pony.auth.tokens import TokenService
from dancing_pony.config import get_settings
from dancing_pony.errors import MissingSigningKeyError
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.database import get_session
from dancing_pony.storage.s3 import S3Client

__all__ = [
    "get_cache",
    "get_ip_rate_limiter",
    "get_s3_client",
    "get_session",
    "get_token_service",
    "get_user_rate_limiter",
]


@lru_cache(maxsize=1)
def get_token_service() -> TokenService:
    """Process-wide token service built once from settings.

    Raises:
        MissingSigningKeyError: if ``JWT_SECRET`` is not configured.
            The application lifespan calls this at startup so the
            process fails before serving any request.
    """
    settings = get_settings()
    if settings.jwt_secret is None:
        msg = "JWT_SECRET environment variable is not set"
        raise MissingSigningKeyError(msg)
    return TokenService(
        settings.jwt_secret.get_secret_value(),
        ttl=timedelta(hours=settings.token_ttl_hours),
    )


async def get_user_rate_limiter(request: Request) -> InMemoryRateLimiter:
    """Per-user limiter, created with the app."""
    return cast(InMemoryRateLimiter, request.app.state.user_rate_limiter)


async def get_ip_rate_limiter(request: Request) -> InMemoryRateLimiter:
    """Per-client-IP limiter, created with the app."""
    return cast(InMemoryRateLimiter, request.app.state.ip_rate_limiter)


async def get_cache(request: Request) -> ResponseCache:
    """Retrieve ResponseCache from app state.

    Initialized during lifespan startup.
    """
    return cast(ResponseCache, request.app.state.cache)


async def get_s3_client(request: Request) -> S3Client:
    """Retrieve S3Client from app state.

    Initialized during lifespan startup.
    """
    return cast(S3Client, request.app.state.s3_client)
