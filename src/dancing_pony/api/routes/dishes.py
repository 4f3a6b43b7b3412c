"""Dish endpoints: menu reads and ratings for any member, admin writes."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.deps import get_cache, get_s3_client, get_session
from dancing_pony.api.schemas import (
    APIResponse,
    DishListResponse,
    DishResponse,
    RateDishRequest,
    RatingResponse,
)
from dancing_pony.auth.context import Permission, RequestIdentity
from dancing_pony.auth.pipeline import require_permissions
from dancing_pony.errors import MalformedError
from dancing_pony.services.dishes import DishService
from dancing_pony.storage.cache import ResponseCache
from dancing_pony.storage.s3 import S3Client

router = APIRouter(prefix="/restaurants/{restaurant_id}/dishes", tags=["dishes"])

MAX_IMAGE_BYTES = 32 * 1024 * 1024

SearchQuery = Annotated[
    str, Query(alias="searchTerm", min_length=1, max_length=200)
]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
CacheDep = Annotated[ResponseCache, Depends(get_cache)]
S3Dep = Annotated[S3Client, Depends(get_s3_client)]
MemberDep = Annotated[
    RequestIdentity,
    Depends(
        require_permissions(
            Permission.CUSTOMER, Permission.RESTAURANT, Permission.ADMIN
        )
    ),
]
StaffDep = Annotated[
    RequestIdentity,
    Depends(require_permissions(Permission.RESTAURANT, Permission.ADMIN)),
]
PageQuery = Annotated[int, Query(ge=1, description="Page number, from 1.")]
LimitQuery = Annotated[int, Query(ge=1, le=100, description="Page size (1-100).")]


def _service(
    identity: RequestIdentity, session: AsyncSession, cache: ResponseCache
) -> DishService:
    # request_tenant_id is the path tenant; it differs from the user's own
    # restaurant only for admins.
    tenant_id = identity.request_tenant_id or identity.tenant_id
    return DishService(session, tenant_id, cache)


async def _upload(s3: S3Client, image: UploadFile) -> str:
    """Validate and store a dish image, returning its public URL."""
    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        raise MalformedError("Image must be an image file")
    data = await image.read()
    if not data:
        raise MalformedError("Image file is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise MalformedError("Image file is too large")
    return await s3.upload_image(image.filename, data, content_type)


@router.get("")
async def list_dishes(
    identity: MemberDep,
    session: SessionDep,
    cache: CacheDep,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> APIResponse[DishListResponse]:
    """List the restaurant's dishes, newest first."""
    result = await _service(identity, session, cache).list(page=page, limit=limit)
    return APIResponse(message="Dishes retrieved successfully", data=result)


@router.get("/search")
async def search_dishes(
    identity: MemberDep,
    session: SessionDep,
    cache: CacheDep,
    search_term: SearchQuery,
    page: PageQuery = 1,
    limit: LimitQuery = 10,
) -> APIResponse[DishListResponse]:
    """Case-insensitive substring search on dish name."""
    result = await _service(identity, session, cache).search(
        search_term, page=page, limit=limit
    )
    return APIResponse(message="Dishes retrieved successfully", data=result)


@router.post("/admin")
async def create_dish(
    identity: StaffDep,
    session: SessionDep,
    cache: CacheDep,
    s3: S3Dep,
    name: Annotated[str, Form(min_length=1, max_length=200)],
    description: Annotated[str, Form(min_length=1)],
    price: Annotated[float, Form(gt=0)],
    image: UploadFile,
) -> APIResponse[DishResponse]:
    """Create a dish from a multipart form with its image."""
    service = _service(identity, session, cache)
    # Admins pass the tenant check for any restaurant id, so the tenant
    # must exist before the image is stored.
    await service.ensure_restaurant()
    image_url = await _upload(s3, image)
    dish = await service.create(
        user_id=identity.user_id,
        name=name,
        description=description,
        price=price,
        image_url=image_url,
    )
    return APIResponse(message="Dish created successfully", data=dish)


@router.patch("/admin/{dish_id}")
async def update_dish(
    dish_id: uuid.UUID,
    identity: StaffDep,
    session: SessionDep,
    cache: CacheDep,
    s3: S3Dep,
    name: Annotated[str | None, Form(min_length=1, max_length=200)] = None,
    description: Annotated[str | None, Form(min_length=1)] = None,
    price: Annotated[float | None, Form(gt=0)] = None,
    image: UploadFile | None = None,
) -> APIResponse[DishResponse]:
    """Partially update a dish. Omitted fields are kept."""
    image_url = await _upload(s3, image) if image is not None else None
    dish = await _service(identity, session, cache).update(
        dish_id,
        user_id=identity.user_id,
        name=name,
        description=description,
        price=price,
        image_url=image_url,
    )
    return APIResponse(message="Dish updated successfully", data=dish)


@router.delete("/admin/{dish_id}")
async def delete_dish(
    dish_id: uuid.UUID,
    identity: StaffDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[None]:
    await _service(identity, session, cache).delete(dish_id)
    return APIResponse(message="Dish deleted successfully")


@router.get("/{dish_id}")
async def get_dish(
    dish_id: uuid.UUID,
    identity: MemberDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[DishResponse]:
    dish = await _service(identity, session, cache).get(dish_id)
    return APIResponse(message="Dish found", data=dish)


@router.post("/{dish_id}/rate")
async def rate_dish(
    dish_id: uuid.UUID,
    body: RateDishRequest,
    identity: MemberDep,
    session: SessionDep,
    cache: CacheDep,
) -> APIResponse[RatingResponse]:
    """Record a 1-5 rating by the calling user."""
    rating = await _service(identity, session, cache).rate(
        dish_id, user_id=identity.user_id, rating=body.rating
    )
    return APIResponse(message="Dish successfully rated", data=rating)
