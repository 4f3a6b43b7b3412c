"""Redis side-cache for read paths.

Redis is an optimization only, never the source of truth: connection
failures degrade to a cache miss, and failed writes or invalidations are
logged and ignored. A payload that is present but cannot be decoded is a
different matter and is raised as ``CacheCorruptedError``.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from dancing_pony.errors import CacheCorruptedError

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 600
SCAN_BATCH_SIZE = 500


class ResponseCache:
    """JSON read-through cache over an async Redis client.

    Usage::

        cache = ResponseCache(Redis.from_url(url), ttl_seconds=600)
        hit = await cache.get_json("dishes:<tenant>:item:<id>")
    """

    def __init__(self, redis: Redis, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    async def get_json(self, key: str) -> Any | None:
        """Return the decoded value for ``key``, or None on a miss.

        Raises:
            CacheCorruptedError: the stored payload is not valid JSON.
        """
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("cache_payload_corrupted", key=key, error=str(e))
            msg = "Cached value could not be decoded"
            raise CacheCorruptedError(msg) from e

    async def set_json(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key`` with the configured TTL.

        Returns:
            True if stored, False if Redis rejected the write.
        """
        try:
            await self._redis.set(key, json.dumps(value), ex=self._ttl)
        except RedisError as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False
        return True

    async def delete(self, *keys: str) -> int:
        """Delete exact keys. Returns the number removed (0 on failure)."""
        if not keys:
            return 0
        try:
            return int(await self._redis.delete(*keys))
        except RedisError as e:
            logger.warning("cache_delete_failed", keys=list(keys), error=str(e))
            return 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern``.

        Uses incremental SCAN rather than KEYS so a large keyspace does
        not block the server.

        Returns:
            Number of keys removed (0 on failure).
        """
        removed = 0
        batch: list[Any] = []
        try:
            keys = self._redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)
            async for key in keys:
                batch.append(key)
                if len(batch) >= SCAN_BATCH_SIZE:
                    removed += int(await self._redis.delete(*batch))
                    batch.clear()
            if batch:
                removed += int(await self._redis.delete(*batch))
        except RedisError as e:
            logger.warning("cache_delete_pattern_failed", pattern=pattern, error=str(e))
        return removed

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()
