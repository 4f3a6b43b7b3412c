"""Tests for registration and login."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from dancing_pony.auth.passwords import hash_password
from dancing_pony.auth.tokens import TokenService
from dancing_pony.errors import (
    ConflictError,
    MalformedError,
    NotFoundError,
    UnauthenticatedError,
)
from dancing_pony.services.auth import AuthService
from dancing_pony.storage.repositories import (
    PermissionRepository,
    RestaurantRepository,
    UserRepository,
)

TENANT = uuid.uuid4()


def _permission(name: str) -> MagicMock:
    p = MagicMock()
    p.name = name
    return p


@pytest.fixture()
def session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture()
def service(session: AsyncMock, token_service: TokenService) -> AuthService:
    return AuthService(session, token_service)


@pytest.fixture()
def restaurant_exists():
    with patch.object(RestaurantRepository, "get_by_id", return_value=MagicMock()):
        yield


@pytest.mark.usefixtures("restaurant_exists")
class TestRegister:
    async def test_creates_user_with_hashed_password(
        self, service: AuthService, session: AsyncMock
    ) -> None:
        created = MagicMock()
        created.id = uuid.uuid4()
        with (
            patch.object(UserRepository, "get_by_email", return_value=None),
            patch.object(
                PermissionRepository,
                "get_by_names",
                return_value=[_permission("customer")],
            ),
            patch.object(UserRepository, "create", return_value=created) as create,
        ):
            user = await service.register(
                TENANT,
                name="Frodo",
                email="frodo@shire.me",
                password="ring",
                permissions=["customer"],
            )

        assert user is created
        kwargs = create.await_args.kwargs
        assert kwargs["restaurant_id"] == TENANT
        assert kwargs["password_hash"] != "ring"
        assert kwargs["password_hash"].startswith("$2")
        session.commit.assert_awaited_once()

    async def test_second_registration_conflicts(self, service: AuthService) -> None:
        """Registering the same (email, restaurant) twice is rejected."""
        with (
            patch.object(UserRepository, "get_by_email", return_value=MagicMock()),
            patch.object(UserRepository, "create") as create,
        ):
            with pytest.raises(ConflictError):
                await service.register(
                    TENANT,
                    name="Frodo",
                    email="frodo@shire.me",
                    password="ring",
                    permissions=["customer"],
                )
        create.assert_not_awaited()

    async def test_race_on_unique_constraint_conflicts(
        self, service: AuthService, session: AsyncMock
    ) -> None:
        session.commit.side_effect = IntegrityError("INSERT", {}, Exception("dup"))
        with (
            patch.object(UserRepository, "get_by_email", return_value=None),
            patch.object(
                PermissionRepository,
                "get_by_names",
                return_value=[_permission("customer")],
            ),
            patch.object(UserRepository, "create", return_value=MagicMock()),
        ):
            with pytest.raises(ConflictError):
                await service.register(
                    TENANT,
                    name="Sam",
                    email="sam@shire.me",
                    password="potatoes",
                    permissions=["customer"],
                )
        session.rollback.assert_awaited_once()

    async def test_unknown_permission(self, service: AuthService) -> None:
        with (
            patch.object(UserRepository, "get_by_email", return_value=None),
            patch.object(
                PermissionRepository,
                "get_by_names",
                return_value=[_permission("customer")],
            ),
        ):
            with pytest.raises(MalformedError):
                await service.register(
                    TENANT,
                    name="Gollum",
                    email="smeagol@misty.mt",
                    password="precious",
                    permissions=["customer", "wizard"],
                )


class TestRegisterMissingRestaurant:
    async def test_not_found(self, service: AuthService) -> None:
        with patch.object(RestaurantRepository, "get_by_id", return_value=None):
            with pytest.raises(NotFoundError):
                await service.register(
                    TENANT,
                    name="Frodo",
                    email="frodo@shire.me",
                    password="ring",
                    permissions=["customer"],
                )


class TestLogin:
    async def test_issues_verifiable_token(
        self, service: AuthService, token_service: TokenService
    ) -> None:
        user = MagicMock()
        user.id = uuid.uuid4()
        user.password_hash = hash_password("ring")
        with patch.object(UserRepository, "get_by_email", return_value=user):
            token = await service.login(TENANT, email="frodo@shire.me", password="ring")
        assert token_service.verify(token) == user.id

    async def test_wrong_password_and_unknown_email_look_alike(
        self, service: AuthService
    ) -> None:
        user = MagicMock()
        user.id = uuid.uuid4()
        user.password_hash = hash_password("ring")

        with patch.object(UserRepository, "get_by_email", return_value=user):
            with pytest.raises(UnauthenticatedError) as wrong_password:
                await service.login(TENANT, email="frodo@shire.me", password="nope")
        with patch.object(UserRepository, "get_by_email", return_value=None):
            with pytest.raises(UnauthenticatedError) as unknown_email:
                await service.login(TENANT, email="nobody@shire.me", password="x")

        assert wrong_password.value.message == unknown_email.value.message
