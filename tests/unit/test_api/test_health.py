"""Tests for FastAPI bootstrap: health, routing, lifespan."""

from collections.abc import AsyncGenerator, Generator
from contextlib import contextmanager
from typing import NamedTuple
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from dancing_pony.api.app import app
from dancing_pony.errors import MissingSigningKeyError


class HealthMocks(NamedTuple):
    """Mocks returned by mock_health_deps context manager."""

    db_session: AsyncMock
    cache: AsyncMock
    s3_client: AsyncMock


@contextmanager
def mock_health_deps(
    *,
    db_error: Exception | None = None,
    redis_error: Exception | None = None,
    s3_error: Exception | None = None,
) -> Generator[HealthMocks]:
    """Mock DB, Redis and S3 dependencies for health check tests.

    Args:
        db_error: If set, async_session __aenter__ raises this exception.
        redis_error: If set, cache.ping raises this exception.
        s3_error: If set, s3_client.check_connectivity raises this exception.
    """
    mock_s3 = AsyncMock()
    mock_s3.check_connectivity = AsyncMock(side_effect=s3_error)

    mock_cache = AsyncMock()
    mock_cache.ping = AsyncMock(side_effect=redis_error, return_value=True)

    mock_db_session = AsyncMock()
    mock_db_session.execute = AsyncMock()

    with patch("dancing_pony.api.app.async_session") as mock_session_factory:
        if db_error:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                side_effect=db_error
            )
        else:
            mock_session_factory.return_value.__aenter__ = AsyncMock(
                return_value=mock_db_session
            )
        mock_session_factory.return_value.__aexit__ = AsyncMock(return_value=False)
        app.state.cache = mock_cache
        app.state.s3_client = mock_s3

        yield HealthMocks(
            db_session=mock_db_session, cache=mock_cache, s3_client=mock_s3
        )


@pytest.fixture()
async def bare_client() -> AsyncGenerator[AsyncClient]:
    """AsyncClient with no dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


class TestHealth:
    async def test_health_all_ok(self, bare_client: AsyncClient) -> None:
        """GET /health returns 200 when DB, Redis and S3 are reachable."""
        with mock_health_deps():
            response = await bare_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"] == {"db": "ok", "redis": "ok", "s3": "ok"}
        assert "timestamp" in data

    async def test_health_db_down(self, bare_client: AsyncClient) -> None:
        with mock_health_deps(db_error=TimeoutError("db timeout")):
            response = await bare_client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert "error" in data["checks"]["db"]
        assert data["checks"]["s3"] == "ok"

    async def test_health_redis_down(self, bare_client: AsyncClient) -> None:
        with mock_health_deps(redis_error=RedisConnectionError("refused")):
            response = await bare_client.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["redis"] == "error: ConnectionError"
        assert response.json()["checks"]["db"] == "ok"

    async def test_health_s3_down(self, bare_client: AsyncClient) -> None:
        with mock_health_deps(s3_error=TimeoutError("s3 down")):
            response = await bare_client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["checks"]["db"] == "ok"
        assert "error" in data["checks"]["s3"]

    async def test_health_method_not_allowed(self, bare_client: AsyncClient) -> None:
        response = await bare_client.post("/health")
        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed"}


class TestRouting:
    async def test_unknown_route_returns_404(self, bare_client: AsyncClient) -> None:
        response = await bare_client.get("/nonexistent")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_routes_registered_under_api(self) -> None:
        paths = {route.path for route in app.routes}
        assert "/api/restaurants" in paths
        assert "/api/restaurants/{restaurant_id}/auth/login" in paths
        assert "/api/restaurants/{restaurant_id}/dishes/{dish_id}/rate" in paths


@contextmanager
def _lifespan_patches() -> Generator[MagicMock]:
    with (
        patch("dancing_pony.api.app.get_token_service"),
        patch("dancing_pony.api.app._seed_permissions", new_callable=AsyncMock),
        patch("dancing_pony.api.app.Redis") as mock_redis_cls,
        patch("dancing_pony.api.app.engine") as mock_engine,
        patch("dancing_pony.api.app.S3Client") as mock_s3_cls,
    ):
        mock_redis_cls.from_url.return_value = AsyncMock()
        mock_engine.dispose = AsyncMock()
        mock_s3_cls.return_value = AsyncMock()
        yield mock_engine


class TestLifespan:
    async def test_lifespan_wires_state(self) -> None:
        from dancing_pony.api.app import lifespan

        with _lifespan_patches():
            async with lifespan(app):
                assert app.state.cache is not None
                app.state.s3_client.ensure_bucket.assert_awaited_once()

    async def test_lifespan_disposes_engine(self) -> None:
        from dancing_pony.api.app import lifespan

        with _lifespan_patches() as mock_engine:
            async with lifespan(app):
                pass
            mock_engine.dispose.assert_awaited_once()

    async def test_missing_signing_key_aborts_startup(self) -> None:
        from dancing_pony.api.app import lifespan

        with (
            _lifespan_patches(),
            patch(
                "dancing_pony.api.app.get_token_service",
                side_effect=MissingSigningKeyError("JWT_SECRET is not set"),
            ),
        ):
            with pytest.raises(MissingSigningKeyError):
                async with lifespan(app):
                    pass
