"""Authenticated identity context for request processing."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import StrEnum


class Permission(StrEnum):
    """Fixed set of capabilities a user can hold."""

    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    ADMIN = "admin"


@dataclass(frozen=True)
class RequestIdentity:
    """Authenticated user, published once by the authorization pipeline.

    Handlers read it from ``request.state.identity`` (or receive it as the
    dependency result) and never mutate it.
    """

    user_id: uuid.UUID
    tenant_id: uuid.UUID
    permissions: tuple[str, ...]
    # Tenant of the request path; differs from tenant_id only for admins.
    request_tenant_id: uuid.UUID | None = None

    @property
    def is_admin(self) -> bool:
        return Permission.ADMIN in self.permissions

    def has_any(self, required: tuple[str, ...] | frozenset[str]) -> bool:
        """True if the identity holds at least one of ``required``."""
        return any(p in self.permissions for p in required)
