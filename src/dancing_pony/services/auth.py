"""Registration and login for restaurant users."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.auth.passwords import hash_password, verify_password
from dancing_pony.auth.tokens import TokenService
from dancing_pony.errors import (
    ConflictError,
    MalformedError,
    NotFoundError,
    UnauthenticatedError,
)
from dancing_pony.storage.orm import User
from dancing_pony.storage.repositories import (
    PermissionRepository,
    RestaurantRepository,
    UserRepository,
)

logger = structlog.get_logger()

LOGIN_FAILED = "Login failed"


class AuthService:
    """Create users inside a restaurant and exchange credentials for tokens."""

    def __init__(self, session: AsyncSession, tokens: TokenService) -> None:
        self._session = session
        self._tokens = tokens
        self._users = UserRepository(session)

    async def register(
        self,
        tenant_id: uuid.UUID,
        *,
        name: str,
        email: str,
        password: str,
        permissions: Sequence[str],
    ) -> User:
        """Register a user in ``tenant_id``.

        Raises:
            NotFoundError: the restaurant does not exist.
            ConflictError: the email is already registered there.
            MalformedError: a permission name is not in the catalogue.
        """
        if await RestaurantRepository(self._session).get_by_id(tenant_id) is None:
            raise NotFoundError("Restaurant not found")

        if await self._users.get_by_email(tenant_id, email) is not None:
            logger.info("register_conflict")
            raise ConflictError("User with that email already exists")

        wanted = set(permissions)
        found = await PermissionRepository(self._session).get_by_names(wanted)
        if len(found) != len(wanted):
            missing = sorted(wanted - {p.name for p in found})
            logger.warning("register_unknown_permissions", permissions=missing)
            raise MalformedError("Unknown permission")

        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            user = await self._users.create(
                restaurant_id=tenant_id,
                name=name,
                email=email,
                password_hash=password_hash,
                permissions=found,
            )
            await self._session.commit()
        except IntegrityError as e:
            # Concurrent registration of the same email won the race.
            await self._session.rollback()
            raise ConflictError("User with that email already exists") from e

        logger.info(
            "user_registered",
            user_id=str(user.id),
            permissions=sorted(wanted),
        )
        return user

    async def login(self, tenant_id: uuid.UUID, *, email: str, password: str) -> str:
        """Return a session token for valid credentials.

        Unknown email and wrong password fail identically.
        """
        user = await self._users.get_by_email(tenant_id, email)
        if user is None:
            logger.info("login_failed", reason="unknown_user")
            raise UnauthenticatedError(LOGIN_FAILED)

        ok = await asyncio.to_thread(verify_password, password, user.password_hash)
        if not ok:
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise UnauthenticatedError(LOGIN_FAILED)

        token = self._tokens.issue(user.id)
        logger.info("login_succeeded", user_id=str(user.id))
        return token
