"""CRUD repositories for database operations."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dancing_pony.auth.context import Permission as PermissionName
from dancing_pony.storage.orm import Dish, Permission, Rating, Restaurant, User


def _offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def _contains(term: str) -> str:
    """Build an ILIKE pattern matching ``term`` literally anywhere."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PermissionRepository:
    """Repository for the fixed permission catalogue."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def seed_defaults(self) -> list[str]:
        """Create any missing default permissions.

        Idempotent: existing names are left untouched.

        Returns:
            Names that were created by this call.
        """
        result = await self._session.execute(select(Permission.name))
        existing = set(result.scalars().all())
        created = [p.value for p in PermissionName if p.value not in existing]
        for name in created:
            self._session.add(Permission(name=name))
        await self._session.flush()
        return created

    async def get_by_names(self, names: Iterable[str]) -> list[Permission]:
        """Fetch permissions by name, ordered by name.

        Unknown names are simply absent from the result; callers compare
        lengths to detect them.
        """
        wanted = sorted(set(names))
        if not wanted:
            return []
        stmt = (
            select(Permission)
            .where(Permission.name.in_(wanted))
            .order_by(Permission.name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class UserRepository:
    """Credential store: users, their password hashes and permissions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        restaurant_id: uuid.UUID,
        name: str,
        email: str,
        password_hash: str,
        permissions: list[Permission],
    ) -> User:
        """Create a new user in ``restaurant_id`` with the given permissions."""
        user = User(
            restaurant_id=restaurant_id,
            name=name,
            email=email,
            password_hash=password_hash,
            permissions=permissions,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def get_by_email(self, restaurant_id: uuid.UUID, email: str) -> User | None:
        """Get user by email within one restaurant (emails are per-tenant).

        Emails are stored lower-cased, so the lookup is case-insensitive.
        """
        stmt = (
            select(User)
            .where(
                User.restaurant_id == restaurant_id,
                User.email == email.strip().lower(),
            )
            .options(selectinload(User.permissions))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_with_permissions(self, user_id: uuid.UUID) -> User | None:
        """Get user by primary key with permissions eagerly loaded."""
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.permissions))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class RestaurantRepository:
    """Repository for restaurants (tenants). Soft-deleted rows are hidden."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _live() -> ColumnElement[bool]:
        return Restaurant.deleted_at.is_(None)

    async def create(
        self,
        *,
        name: str,
        description: str,
        location: str,
        image_url: str,
    ) -> Restaurant:
        restaurant = Restaurant(
            name=name,
            description=description,
            location=location,
            image_url=image_url,
        )
        self._session.add(restaurant)
        await self._session.flush()
        return restaurant

    async def get_by_id(self, restaurant_id: uuid.UUID) -> Restaurant | None:
        stmt = select(Restaurant).where(Restaurant.id == restaurant_id, self._live())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_page(self, *, page: int, limit: int) -> tuple[list[Restaurant], int]:
        """List restaurants, newest first.

        Returns:
            (restaurants on the page, total number of restaurants).
        """
        return await self._page(self._live(), page=page, limit=limit)

    async def search(
        self, term: str, *, page: int, limit: int
    ) -> tuple[list[Restaurant], int]:
        """Case-insensitive substring match on restaurant name."""
        return await self._page(
            self._live(),
            Restaurant.name.ilike(_contains(term), escape="\\"),
            page=page,
            limit=limit,
        )

    async def update(
        self, restaurant_id: uuid.UUID, **fields: Any
    ) -> Restaurant | None:
        """Apply non-None ``fields``. Returns None if the restaurant is absent."""
        restaurant = await self.get_by_id(restaurant_id)
        if restaurant is None:
            return None
        for name, value in fields.items():
            if value is not None:
                setattr(restaurant, name, value)
        await self._session.flush()
        return restaurant

    async def soft_delete(self, restaurant_id: uuid.UUID) -> bool:
        """Mark a restaurant deleted. Returns False if it was not found."""
        stmt = (
            update(Restaurant)
            .where(Restaurant.id == restaurant_id, self._live())
            .values(deleted_at=datetime.now(UTC))
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def _page(
        self, *criteria: ColumnElement[bool], page: int, limit: int
    ) -> tuple[list[Restaurant], int]:
        count_stmt = select(func.count()).select_from(Restaurant).where(*criteria)
        total = (await self._session.execute(count_stmt)).scalar_one()
        stmt = (
            select(Restaurant)
            .where(*criteria)
            .order_by(Restaurant.created_at.desc())
            .limit(limit)
            .offset(_offset(page, limit))
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total


class DishRepository:
    """Tenant-scoped repository for dishes and their ratings.

    All queries are automatically filtered by restaurant_id to ensure
    data isolation between tenants. Soft-deleted dishes are hidden.
    """

    def __init__(self, session: AsyncSession, tenant_id: uuid.UUID) -> None:
        self._session = session
        self._tenant_id = tenant_id

    def _scope(self) -> tuple[ColumnElement[bool], ...]:
        return (Dish.restaurant_id == self._tenant_id, Dish.deleted_at.is_(None))

    async def create(
        self,
        *,
        name: str,
        description: str,
        price: float,
        image_url: str | None,
        created_by_id: uuid.UUID,
    ) -> Dish:
        """Create a new dish for the current tenant."""
        dish = Dish(
            restaurant_id=self._tenant_id,
            name=name,
            description=description,
            price=price,
            image_url=image_url,
            created_by_id=created_by_id,
        )
        self._session.add(dish)
        await self._session.flush()
        return dish

    async def get_by_id(self, dish_id: uuid.UUID) -> Dish | None:
        """Get dish by primary key, scoped to current tenant."""
        stmt = select(Dish).where(Dish.id == dish_id, *self._scope())
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_page(self, *, page: int, limit: int) -> tuple[list[Dish], int]:
        """List dishes for current tenant, newest first.

        Returns:
            (dishes on the page, total number of dishes for the tenant).
        """
        return await self._page(page=page, limit=limit)

    async def search(
        self, term: str, *, page: int, limit: int
    ) -> tuple[list[Dish], int]:
        """Case-insensitive substring match on dish name within the tenant."""
        return await self._page(
            Dish.name.ilike(_contains(term), escape="\\"), page=page, limit=limit
        )

    async def update(
        self,
        dish_id: uuid.UUID,
        *,
        updated_by_id: uuid.UUID,
        **fields: Any,
    ) -> Dish | None:
        """Apply non-None ``fields`` and stamp the editor.

        Returns:
            The updated dish, or None if it does not exist in this tenant.
        """
        dish = await self.get_by_id(dish_id)
        if dish is None:
            return None
        for name, value in fields.items():
            if value is not None:
                setattr(dish, name, value)
        dish.last_updated_by_id = updated_by_id
        await self._session.flush()
        return dish

    async def soft_delete(self, dish_id: uuid.UUID) -> bool:
        """Mark a dish deleted. Returns False if it was not found."""
        stmt = (
            update(Dish)
            .where(Dish.id == dish_id, *self._scope())
            .values(deleted_at=datetime.now(UTC))
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def add_rating(
        self, dish_id: uuid.UUID, *, user_id: uuid.UUID, rating: int
    ) -> Rating:
        """Record a rating. Caller must have checked the dish exists."""
        record = Rating(dish_id=dish_id, user_id=user_id, rating=rating)
        self._session.add(record)
        await self._session.flush()
        return record

    async def _page(
        self, *criteria: ColumnElement[bool], page: int, limit: int
    ) -> tuple[list[Dish], int]:
        where = (*self._scope(), *criteria)
        count_stmt = select(func.count()).select_from(Dish).where(*where)
        total = (await self._session.execute(count_stmt)).scalar_one()
        stmt = (
            select(Dish)
            .where(*where)
            .order_by(Dish.created_at.desc())
            .limit(limit)
            .offset(_offset(page, limit))
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all()), total
