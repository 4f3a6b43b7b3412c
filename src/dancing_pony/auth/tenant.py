"""Tenant (restaurant) resolution from the request path."""

from __future__ import annotations

import uuid

import structlog
from fastapi import Request

from dancing_pony.errors import InvalidTenantError

logger = structlog.get_logger()


def resolve_tenant(raw: str) -> uuid.UUID:
    """Parse a restaurant identifier taken from the URL.

    Raises:
        InvalidTenantError: if ``raw`` is not a well-formed UUID.
    """
    try:
        return uuid.UUID(raw)
    except (ValueError, TypeError) as e:
        raise InvalidTenantError() from e


async def get_tenant_id(request: Request, restaurant_id: str) -> uuid.UUID:
    """Resolve the ``{restaurant_id}`` path segment for tenant-scoped routes.

    Stores the result on ``request.state.tenant_id`` and in the log
    context for downstream consumers.
    """
    try:
        tenant_id = resolve_tenant(restaurant_id)
    except InvalidTenantError:
        logger.warning("invalid_tenant_in_path")
        raise
    request.state.tenant_id = tenant_id
    structlog.contextvars.bind_contextvars(tenant_id=str(tenant_id))
    return tenant_id
