"""Read-through caching shared by the domain services."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from dancing_pony.errors import CacheCorruptedError
from dancing_pony.storage.cache import ResponseCache

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


async def read_through(
    cache: ResponseCache,
    key: str,
    model: type[M],
    loader: Callable[[], Awaitable[M]],
) -> M:
    """Return ``model`` from the cache, or load it and populate the cache.

    A cached payload that no longer fits ``model`` is reported as
    CacheCorruptedError rather than silently reloaded.
    """
    cached = await cache.get_json(key)
    if cached is not None:
        try:
            value = model.model_validate(cached)
        except ValidationError as e:
            logger.error("cache_payload_invalid", key=key, model=model.__name__)
            msg = "Cached value has an unexpected shape"
            raise CacheCorruptedError(msg) from e
        logger.debug("cache_hit", key=key)
        return value

    value = await loader()
    stored = await cache.set_json(key, value.model_dump(mode="json"))
    logger.debug("cache_miss", key=key, stored=stored)
    return value
