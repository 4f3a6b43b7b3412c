"""Restaurant endpoints.

Write policy (``RESTAURANT_WRITE_POLICY``):

- reads (list, search, get) are public and rate limited per client IP;
- creating a restaurant needs ``admin`` and is not tenant-scoped;
- updating or deleting needs ``admin`` or ``restaurant``, scoped to the
  restaurant in the path (admins pass the scope check anywhere).

The very first restaurant and admin are created with
``scripts/manage_restaurant.py``.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.deps import get_cache, get_session
from dancing_pony.api.schemas import (
    APIResponse,
    RestaurantCreateRequest,
    RestaurantListResponse,
    RestaurantResponse,
    RestaurantUpdateRequest,
)
from dancing_pony.auth.context import Permission, RequestIdentity
from dancing_pony.auth.pipeline import limit_by_ip, require_permissions
from dancing_pony.services.restaurants import RestaurantService
from dancing_pony.storage.cache import ResponseCache

RESTAURANT_WRITE_POLICY: dict[str, tuple[tuple[Permission, ...], bool]] = {
    # operation: (any-of permissions, tenant scoped)
    "create": ((Permission.ADMIN,), False),
    "update": ((Permission.ADMIN, Permission.RESTAURANT), True),
    "delete": ((Permission.ADMIN, Permission.RESTAURANT), True),
}


def _policy(
    operation: str,
) -> Callable[..., Coroutine[Any, Any, RequestIdentity]]:
    permissions, tenant_scoped = RESTAURANT_WRITE_POLICY[operation]
    return require_permissions(*permissions, tenant_scoped=tenant_scoped)


router = APIRouter(prefix="/restaurants", tags=["restaurants"])

SearchQuery = Annotated[
    str, Query(alias="searchTerm", min_length=1, max_length=200)
]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
CacheDep = Annotated[ResponseCache, Depends(get_cache)]
PublicDep = Annotated[None, Depends(limit_by_ip)]
CreateDep = Annotated[RequestIdentity, Depends(_policy("create"))]
UpdateDep = Annotated[RequestIdentity, Depends(_policy("update"))]
DeleteDep = Annotated[RequestIdentity, Depends(_policy("delete"))]
PageQuery = Annotated[int, Query(ge=1)]
LimitQuery = Annotated[int, Query(ge=1, le=100)]


@router.get("")
async def list_restaurants(
    _limit: PublicDep,
    session: SessionDep,
    cache: CacheDep,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> APIResponse[RestaurantListResponse]:
    result = await RestaurantService(session, cache).list(page=page, limit=limit)
    return APIResponse(message="Restaurants retrieved successfully", data=result)


@router.get("/search")
async def search_restaurants(
    _limit: PublicDep,
    session: SessionDep,
    cache: CacheDep,
    search_term: SearchQuery,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> APIResponse[RestaurantListResponse]:
    """Case-insensitive substring search on restaurant name."""
    result = await RestaurantService(session, cache).search(
        search_term, page=page, limit=limit
    )
    return APIResponse(message="Restaurants retrieved successfully", data=result)


@router.post("")
async def create_restaurant(
    body: RestaurantCreateRequest,
    _identity: CreateDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[RestaurantResponse]:
    restaurant = await RestaurantService(session, cache).create(
        name=body.name,
        description=body.description,
        location=body.location,
        image_url=body.image_url,
    )
    return APIResponse(message="Restaurant created successfully", data=restaurant)


@router.get("/{restaurant_id}")
async def get_restaurant(
    restaurant_id: uuid.UUID,
    _limit: PublicDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[RestaurantResponse]:
    restaurant = await RestaurantService(session, cache).get(restaurant_id)
    return APIResponse(message="Restaurant found", data=restaurant)


@router.patch("/{restaurant_id}")
async def update_restaurant(
    body: RestaurantUpdateRequest,
    identity: UpdateDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[RestaurantResponse]:
    """Partially update a restaurant. Omitted fields are kept."""
    restaurant_id = identity.request_tenant_id or identity.tenant_id
    restaurant = await RestaurantService(session, cache).update(
        restaurant_id,
        name=body.name,
        description=body.description,
        location=body.location,
        image_url=body.image_url,
    )
    return APIResponse(message="Restaurant updated successfully", data=restaurant)


@router.delete("/{restaurant_id}")
async def delete_restaurant(
    identity: DeleteDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[None]:
    restaurant_id = identity.request_tenant_id or identity.tenant_id
    await RestaurantService(session, cache).delete(restaurant_id)
    return APIResponse(message="Restaurant deleted successfully")
