"""Restaurant (tenant) use cases with read-through caching."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.schemas import (
    RestaurantListResponse,
    RestaurantResponse,
    total_pages,
)
from dancing_pony.errors import NotFoundError
from dancing_pony.services.base import read_through
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.orm import Restaurant
from dancing_pony.storage.repositories import RestaurantRepository

logger = structlog.get_logger()


def restaurant_item_key(restaurant_id: uuid.UUID) -> str:
    return f"restaurants:item:{restaurant_id}"


def restaurant_list_key(page: int, limit: int) -> str:
    return f"restaurants:list:page={page}:limit={limit}"


def restaurant_search_key(term: str, page: int, limit: int) -> str:
    return f"restaurants:search:{term.lower()}:page={page}:limit={limit}"


def to_restaurant_response(restaurant: Restaurant) -> RestaurantResponse:
    return RestaurantResponse(
        id=restaurant.id,
        name=restaurant.name,
        description=restaurant.description,
        location=restaurant.location,
        image_url=restaurant.image_url,
    )


class RestaurantService:
    def __init__(self, session: AsyncSession, cache: ResponseCache) -> None:
        self._session = session
        self._cache = cache
        self._repo = RestaurantRepository(session)

    async def list(self, *, page: int, limit: int) -> RestaurantListResponse:
        async def load() -> RestaurantListResponse:
            items, total = await self._repo.list_page(page=page, limit=limit)
            return RestaurantListResponse(
                restaurants=[to_restaurant_response(r) for r in items],
                current_page=page,
                total_pages=total_pages(total, limit),
                total_items=total,
            )

        key = restaurant_list_key(page, limit)
        return await read_through(self._cache, key, RestaurantListResponse, load)

    async def search(
        self, term: str, *, page: int, limit: int
    ) -> RestaurantListResponse:
        async def load() -> RestaurantListResponse:
            items, total = await self._repo.search(term, page=page, limit=limit)
            return RestaurantListResponse(
                restaurants=[to_restaurant_response(r) for r in items],
                current_page=page,
                total_pages=total_pages(total, limit),
                total_items=total,
            )

        key = restaurant_search_key(term, page, limit)
        return await read_through(self._cache, key, RestaurantListResponse, load)

    async def get(self, restaurant_id: uuid.UUID) -> RestaurantResponse:
        async def load() -> RestaurantResponse:
            restaurant = await self._repo.get_by_id(restaurant_id)
            if restaurant is None:
                raise NotFoundError("Restaurant not found")
            return to_restaurant_response(restaurant)

        key = restaurant_item_key(restaurant_id)
        return await read_through(self._cache, key, RestaurantResponse, load)

    async def create(
        self,
        *,
        name: str,
        description: str,
        location: str,
        image_url: str,
    ) -> RestaurantResponse:
        restaurant = await self._repo.create(
            name=name,
            description=description,
            location=location,
            image_url=image_url,
        )
        await self._session.commit()
        logger.info("restaurant_created", restaurant_id=str(restaurant.id))
        await self._invalidate()
        return to_restaurant_response(restaurant)

    async def update(
        self,
        restaurant_id: uuid.UUID,
        *,
        name: str | None = None,
        description: str | None = None,
        location: str | None = None,
        image_url: str | None = None,
    ) -> RestaurantResponse:
        restaurant = await self._repo.update(
            restaurant_id,
            name=name,
            description=description,
            location=location,
            image_url=image_url,
        )
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        await self._session.commit()
        logger.info("restaurant_updated", restaurant_id=str(restaurant_id))
        await self._invalidate(restaurant_id)
        return to_restaurant_response(restaurant)

    async def delete(self, restaurant_id: uuid.UUID) -> None:
        if not await self._repo.soft_delete(restaurant_id):
            raise NotFoundError("Restaurant not found")
        await self._session.commit()
        logger.info("restaurant_deleted", restaurant_id=str(restaurant_id))
        await self._invalidate(restaurant_id)

    async def _invalidate(self, restaurant_id: uuid.UUID | None = None) -> None:
        if restaurant_id is not None:
            await self._cache.delete(restaurant_item_key(restaurant_id))
        await self._cache.delete_pattern("restaurants:list:*")
        await self._cache.delete_pattern("restaurants:search:*")
