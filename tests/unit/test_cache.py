"""Tests for the Redis response cache."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from dancing_pony.errors import CacheCorruptedError
from dancing_pony.storage.cache import SCAN_BATCH_SIZE, ResponseCache


async def _aiter(items: list[bytes]) -> AsyncIterator[bytes]:
    for item in items:
        yield item


@pytest.fixture()
def redis() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(side_effect=lambda *keys: len(keys))
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    client.scan_iter = MagicMock(return_value=_aiter([]))
    return client


@pytest.fixture()
def cache(redis: MagicMock) -> ResponseCache:
    return ResponseCache(redis, ttl_seconds=600)


class TestGet:
    async def test_miss(self, cache: ResponseCache) -> None:
        assert await cache.get_json("dishes:t:item:1") is None

    async def test_hit_decodes_json(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        redis.get.return_value = json.dumps({"name": "Lembas"}).encode()
        assert await cache.get_json("k") == {"name": "Lembas"}

    async def test_redis_failure_is_a_miss(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        redis.get.side_effect = RedisConnectionError("down")
        assert await cache.get_json("k") is None

    async def test_corrupted_payload_fails_loud(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        redis.get.return_value = b"{not json"
        with pytest.raises(CacheCorruptedError) as exc_info:
            await cache.get_json("k")
        assert exc_info.value.status_code == 500


class TestSet:
    async def test_uses_ttl(self, cache: ResponseCache, redis: MagicMock) -> None:
        assert await cache.set_json("k", {"a": 1}) is True
        redis.set.assert_awaited_once_with("k", '{"a": 1}', ex=600)

    async def test_failure_is_swallowed(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        redis.set.side_effect = RedisConnectionError("down")
        assert await cache.set_json("k", {"a": 1}) is False


class TestDelete:
    async def test_delete_keys(self, cache: ResponseCache, redis: MagicMock) -> None:
        assert await cache.delete("a", "b") == 2
        redis.delete.assert_awaited_once_with("a", "b")

    async def test_delete_nothing(self, cache: ResponseCache, redis: MagicMock) -> None:
        assert await cache.delete() == 0
        redis.delete.assert_not_awaited()

    async def test_delete_pattern_removes_every_page_variant(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        """The wildcard is matched against the store, not used as a key."""
        keys = [
            b"dishes:t1:list:page=1:limit=10",
            b"dishes:t1:list:page=2:limit=10",
            b"dishes:t1:list:page=1:limit=50",
        ]
        redis.scan_iter.return_value = _aiter(keys)

        removed = await cache.delete_pattern("dishes:t1:list:*")

        assert removed == 3
        redis.scan_iter.assert_called_once_with(
            match="dishes:t1:list:*", count=SCAN_BATCH_SIZE
        )
        redis.delete.assert_awaited_once_with(*keys)

    async def test_delete_pattern_batches(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        keys = [f"k:{i}".encode() for i in range(SCAN_BATCH_SIZE + 3)]
        redis.scan_iter.return_value = _aiter(keys)

        assert await cache.delete_pattern("k:*") == SCAN_BATCH_SIZE + 3
        assert redis.delete.await_count == 2

    async def test_delete_pattern_failure_is_swallowed(
        self, cache: ResponseCache, redis: MagicMock
    ) -> None:
        redis.scan_iter.return_value = _aiter([b"k:1"])
        redis.delete.side_effect = RedisConnectionError("down")
        assert await cache.delete_pattern("k:*") == 0


class TestLifecycle:
    async def test_ping_and_close(self, cache: ResponseCache, redis: MagicMock) -> None:
        assert await cache.ping() is True
        await cache.close()
        redis.aclose.assert_awaited_once()
