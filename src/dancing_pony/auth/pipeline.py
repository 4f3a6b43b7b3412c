"""Request authorization pipeline and its FastAPI dependency factories.

Order per request, short-circuiting on the first failure:

1. bearer token present            -> UnauthenticatedError
2. token verifies                  -> UnauthenticatedError
3. user exists                     -> UnauthenticatedError
4. user tenant == path tenant, or user holds ``admin``  -> ForbiddenError
5. user holds one of the route's permissions            -> ForbiddenError

Tenant scope is checked before the fine-grained permission so that a
cross-tenant request from a non-admin is rejected the same way whatever
permission the route asks for. After the pipeline the per-user rate
limiter runs, keyed by the authenticated user id.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.deps import (
    get_ip_rate_limiter,
    get_session,
    get_token_service,
    get_user_rate_limiter,
)
from dancing_pony.auth.context import Permission, RequestIdentity
from dancing_pony.auth.rate_limiter import InMemoryRateLimiter
from dancing_pony.auth.tenant import get_tenant_id
from dancing_pony.auth.tokens import TokenService
from dancing_pony.errors import (
    ForbiddenError,
    TokenError,
    TooManyRequestsError,
    UnauthenticatedError,
)
from dancing_pony.storage.orm import User
from dancing_pony.storage.repositories import UserRepository

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


class IdentityLookup(Protocol):
    async def get_with_permissions(self, user_id: uuid.UUID) -> User | None: ...


class AuthorizationPipeline:
    """Compose token verification, tenant scope and permission checks."""

    def __init__(self, tokens: TokenService, users: IdentityLookup) -> None:
        self._tokens = tokens
        self._users = users

    async def authorize(
        self,
        token: str | None,
        *,
        tenant_id: uuid.UUID | None,
        required: tuple[str, ...] = (),
    ) -> RequestIdentity:
        """Run the pipeline for one request.

        Args:
            token: Raw bearer token, or None if the header was absent.
            tenant_id: Tenant resolved from the path. None for routes
                that are not tenant-scoped (step 4 is skipped).
            required: Permissions of which the user must hold at least
                one. Empty means any authenticated user.

        Returns:
            The identity to publish into the request context.
        """
        if not token:
            logger.warning("auth_token_missing")
            raise UnauthenticatedError("Authorization token is required")

        try:
            user_id = self._tokens.verify(token)
        except TokenError as e:
            logger.warning("auth_token_invalid", reason=type(e).__name__)
            raise UnauthenticatedError("Invalid token") from e

        user = await self._users.get_with_permissions(user_id)
        if user is None:
            logger.warning("auth_user_not_found", user_id=str(user_id))
            raise UnauthenticatedError("User not found")

        identity = RequestIdentity(
            user_id=user.id,
            tenant_id=user.restaurant_id,
            permissions=user.permission_names,
            request_tenant_id=tenant_id,
        )

        if (
            tenant_id is not None
            and identity.tenant_id != tenant_id
            and not identity.is_admin
        ):
            logger.warning(
                "auth_cross_tenant_denied",
                user_id=str(identity.user_id),
                user_tenant_id=str(identity.tenant_id),
            )
            raise ForbiddenError("Forbidden: restaurant access denied")

        if required and not identity.has_any(required):
            logger.warning(
                "auth_permission_denied",
                user_id=str(identity.user_id),
                required_permissions=list(required),
                user_permissions=list(identity.permissions),
            )
            raise ForbiddenError("Forbidden: insufficient permissions")

        return identity


def enforce_rate_limit(limiter: InMemoryRateLimiter, key: str) -> None:
    """Raise TooManyRequestsError if ``key`` is over its window budget."""
    allowed, retry_after = limiter.check(key)
    if not allowed:
        logger.warning("rate_limit_exceeded", key=key, retry_after=retry_after)
        raise TooManyRequestsError(retry_after=retry_after)


def _publish(request: Request, identity: RequestIdentity) -> None:
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(identity.user_id))
    logger.info(
        "auth_granted",
        user_id=str(identity.user_id),
        num_permissions=len(identity.permissions),
    )


_bearer_dep = Depends(bearer_scheme)
_session_dep = Depends(get_session)
_tokens_dep = Depends(get_token_service)
_user_limiter_dep = Depends(get_user_rate_limiter)
_ip_limiter_dep = Depends(get_ip_rate_limiter)
_tenant_dep = Depends(get_tenant_id)


def _token(credentials: HTTPAuthorizationCredentials | None) -> str | None:
    return credentials.credentials if credentials is not None else None


def require_permissions(
    *required: str | Permission,
    tenant_scoped: bool = True,
) -> Callable[..., Coroutine[Any, Any, RequestIdentity]]:
    """Dependency factory: authorize the request, then rate limit the user.

    Usage as parameter dependency (returns RequestIdentity)::

        async def endpoint(
            identity: RequestIdentity = Depends(
                require_permissions(Permission.RESTAURANT, Permission.ADMIN)
            ),
        ): ...

    With ``tenant_scoped=True`` the route must have a ``{restaurant_id}``
    path parameter; it is resolved (400 if malformed) before the token is
    looked at.

    Raises:
        UnauthenticatedError 401: missing, invalid or expired token,
            or unknown user.
        ForbiddenError 403: cross-tenant access without ``admin``, or
            none of the required permissions held.
        TooManyRequestsError 429: per-user window exhausted.
    """
    names = tuple(str(p) for p in required)

    async def _authorize(
        request: Request,
        session: AsyncSession,
        tokens: TokenService,
        limiter: InMemoryRateLimiter,
        credentials: HTTPAuthorizationCredentials | None,
        tenant_id: uuid.UUID | None,
    ) -> RequestIdentity:
        pipeline = AuthorizationPipeline(tokens, UserRepository(session))
        identity = await pipeline.authorize(
            _token(credentials), tenant_id=tenant_id, required=names
        )
        _publish(request, identity)
        enforce_rate_limit(limiter, f"user:{identity.user_id}")
        return identity

    if tenant_scoped:

        async def _tenant_scoped(
            request: Request,
            tenant_id: uuid.UUID = _tenant_dep,
            credentials: HTTPAuthorizationCredentials | None = _bearer_dep,
            session: AsyncSession = _session_dep,
            tokens: TokenService = _tokens_dep,
            limiter: InMemoryRateLimiter = _user_limiter_dep,
        ) -> RequestIdentity:
            return await _authorize(
                request, session, tokens, limiter, credentials, tenant_id
            )

        return _tenant_scoped

    async def _unscoped(
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = _bearer_dep,
        session: AsyncSession = _session_dep,
        tokens: TokenService = _tokens_dep,
        limiter: InMemoryRateLimiter = _user_limiter_dep,
    ) -> RequestIdentity:
        return await _authorize(request, session, tokens, limiter, credentials, None)

    return _unscoped


async def limit_by_ip(
    request: Request,
    limiter: InMemoryRateLimiter = _ip_limiter_dep,
) -> None:
    """Dependency: per-client-IP rate limit for unauthenticated routes."""
    client_ip = request.client.host if request.client else "unknown"
    enforce_rate_limit(limiter, f"ip:{client_ip}")
