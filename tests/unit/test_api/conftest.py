"""Fixtures for API tests: app client with storage and identities mocked."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from dancing_pony.api.app import app
from dancing_pony.api.deps import (
    get_cache,
    get_s3_client,
    get_session,
    get_token_service,
)
from dancing_pony.auth.tokens import TokenService
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.repositories import UserRepository
from dancing_pony.storage.s3 import S3Client

IMAGE_URL = "https://bucket.s3.eu-west-1.amazonaws.com/dishes/pie.png"

MakeIdentity = Callable[..., tuple[MagicMock, dict[str, str]]]


@pytest.fixture()
def mock_session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Cache that always misses and accepts every write."""
    cache = AsyncMock(spec=ResponseCache)
    cache.get_json.return_value = None
    cache.set_json.return_value = True
    cache.delete.return_value = 1
    cache.delete_pattern.return_value = 0
    return cache


@pytest.fixture()
def mock_s3() -> AsyncMock:
    s3 = AsyncMock(spec=S3Client)
    s3.upload_image.return_value = IMAGE_URL
    return s3


@pytest.fixture()
def identities() -> dict[uuid.UUID, MagicMock]:
    """Users known to the credential store, keyed by id."""
    return {}


@pytest.fixture()
def make_identity(
    identities: dict[uuid.UUID, MagicMock], token_service: TokenService
) -> MakeIdentity:
    """Register a user and return it with a ready bearer header.

    Usage::

        user, headers = make_identity("customer", tenant_id=restaurant_id)
    """

    def _make(
        *permissions: str, tenant_id: uuid.UUID | None = None
    ) -> tuple[MagicMock, dict[str, str]]:
        user = MagicMock()
        user.id = uuid.uuid4()
        user.restaurant_id = tenant_id or uuid.uuid4()
        user.permission_names = tuple(sorted(permissions))
        identities[user.id] = user
        token = token_service.issue(user.id)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


def _reset_limiters() -> None:
    app.state.user_rate_limiter.reset()
    app.state.ip_rate_limiter.reset()


@pytest.fixture()
async def client(
    mock_session: AsyncMock,
    mock_cache: AsyncMock,
    mock_s3: AsyncMock,
    token_service: TokenService,
    identities: dict[uuid.UUID, MagicMock],
) -> AsyncGenerator[AsyncClient]:
    """AsyncClient over the real app with DB, Redis, S3 and users mocked."""

    async def _lookup(_self: UserRepository, user_id: uuid.UUID) -> MagicMock | None:
        return identities.get(user_id)

    app.dependency_overrides[get_session] = lambda: mock_session
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_cache] = lambda: mock_cache
    app.dependency_overrides[get_s3_client] = lambda: mock_s3
    _reset_limiters()
    try:
        with patch.object(UserRepository, "get_with_permissions", new=_lookup):
            async with AsyncClient(
                transport=ASGITransport(app=app),
                base_url="http://test",
            ) as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()
        _reset_limiters()
