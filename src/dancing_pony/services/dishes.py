"""Dish use cases: tenant-scoped CRUD, search and ratings with caching."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.schemas import (
    DishListResponse,
    DishResponse,
    RatingResponse,
    total_pages,
)
from dancing_pony.errors import NotFoundError
from dancing_pony.services.base import read_through
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.orm import Dish
from dancing_pony.storage.repositories import DishRepository, RestaurantRepository

logger = structlog.get_logger()


def dish_item_key(tenant_id: uuid.UUID, dish_id: uuid.UUID) -> str:
    return f"dishes:{tenant_id}:item:{dish_id}"


def dish_list_key(tenant_id: uuid.UUID, page: int, limit: int) -> str:
    return f"dishes:{tenant_id}:list:page={page}:limit={limit}"


def dish_search_key(tenant_id: uuid.UUID, term: str, page: int, limit: int) -> str:
    return f"dishes:{tenant_id}:search:{term.lower()}:page={page}:limit={limit}"


def to_dish_response(dish: Dish) -> DishResponse:
    return DishResponse(
        id=dish.id,
        name=dish.name,
        description=dish.description,
        price=dish.price,
        image_url=dish.image_url,
    )


class DishService:
    """Dish operations for one restaurant.

    Reads go through the cache (TTL from settings); writes commit first
    and then drop the dish's point key plus every cached list and search
    page of the tenant.
    """

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: uuid.UUID,
        cache: ResponseCache,
    ) -> None:
        self._session = session
        self._tenant_id = tenant_id
        self._cache = cache
        self._repo = DishRepository(session, tenant_id)

    async def ensure_restaurant(self) -> None:
        """Raise NotFoundError unless the restaurant exists and is not deleted."""
        restaurant = await RestaurantRepository(self._session).get_by_id(
            self._tenant_id
        )
        if restaurant is None:
            raise NotFoundError("Restaurant not found")

    async def list(self, *, page: int, limit: int) -> DishListResponse:
        async def load() -> DishListResponse:
            dishes, total = await self._repo.list_page(page=page, limit=limit)
            return DishListResponse(
                dishes=[to_dish_response(d) for d in dishes],
                current_page=page,
                total_pages=total_pages(total, limit),
                total_items=total,
            )

        key = dish_list_key(self._tenant_id, page, limit)
        return await read_through(self._cache, key, DishListResponse, load)

    async def search(self, term: str, *, page: int, limit: int) -> DishListResponse:
        async def load() -> DishListResponse:
            dishes, total = await self._repo.search(term, page=page, limit=limit)
            return DishListResponse(
                dishes=[to_dish_response(d) for d in dishes],
                current_page=page,
                total_pages=total_pages(total, limit),
                total_items=total,
            )

        key = dish_search_key(self._tenant_id, term, page, limit)
        return await read_through(self._cache, key, DishListResponse, load)

    async def get(self, dish_id: uuid.UUID) -> DishResponse:
        """Raises NotFoundError if the dish is not in this restaurant."""

        async def load() -> DishResponse:
            dish = await self._repo.get_by_id(dish_id)
            if dish is None:
                raise NotFoundError("Dish not found")
            return to_dish_response(dish)

        key = dish_item_key(self._tenant_id, dish_id)
        return await read_through(self._cache, key, DishResponse, load)

    async def create(
        self,
        *,
        user_id: uuid.UUID,
        name: str,
        description: str,
        price: float,
        image_url: str | None,
    ) -> DishResponse:
        dish = await self._repo.create(
            name=name,
            description=description,
            price=price,
            image_url=image_url,
            created_by_id=user_id,
        )
        await self._session.commit()
        logger.info("dish_created", dish_id=str(dish.id))
        await self._invalidate()
        return to_dish_response(dish)

    async def update(
        self,
        dish_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
        name: str | None = None,
        description: str | None = None,
        price: float | None = None,
        image_url: str | None = None,
    ) -> DishResponse:
        """Partial update. Raises NotFoundError if the dish is absent."""
        dish = await self._repo.update(
            dish_id,
            updated_by_id=user_id,
            name=name,
            description=description,
            price=price,
            image_url=image_url,
        )
        if dish is None:
            raise NotFoundError("Dish not found")
        await self._session.commit()
        logger.info("dish_updated", dish_id=str(dish_id))
        await self._invalidate(dish_id)
        return to_dish_response(dish)

    async def delete(self, dish_id: uuid.UUID) -> None:
        if not await self._repo.soft_delete(dish_id):
            raise NotFoundError("Dish not found")
        await self._session.commit()
        logger.info("dish_deleted", dish_id=str(dish_id))
        await self._invalidate(dish_id)

    async def rate(
        self, dish_id: uuid.UUID, *, user_id: uuid.UUID, rating: int
    ) -> RatingResponse:
        if await self._repo.get_by_id(dish_id) is None:
            raise NotFoundError("Dish not found")
        record = await self._repo.add_rating(dish_id, user_id=user_id, rating=rating)
        await self._session.commit()
        logger.info("dish_rated", dish_id=str(dish_id), rating_id=str(record.id))
        await self._invalidate(dish_id)
        return RatingResponse(id=record.id, rating=record.rating, dish_id=dish_id)

    async def _invalidate(self, dish_id: uuid.UUID | None = None) -> None:
        """Drop cached reads affected by a write in this tenant."""
        if dish_id is not None:
            await self._cache.delete(dish_item_key(self._tenant_id, dish_id))
        removed = 0
        for family in ("list", "search"):
            removed += await self._cache.delete_pattern(
                f"dishes:{self._tenant_id}:{family}:*"
            )
        logger.debug("dish_cache_invalidated", pages_removed=removed)
