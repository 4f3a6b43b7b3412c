"""Request/response schemas for the API layer."""

from __future__ import annotations

import uuid
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dancing_pony.auth.context import Permission

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# --- Envelopes ---


class APIResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint.

    Example::

        {"status": "Ok", "message": "Dish found", "data": {...}}
    """

    status: str = "Ok"
    message: str
    data: T | None = None


class ErrorResponse(BaseModel):
    """Error envelope. Never carries stack traces or internal ids."""

    error: str


# --- Auth ---


class RegisterRequest(BaseModel):
    """Request body for POST /restaurants/{id}/auth/register."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    # bcrypt only considers the first 72 bytes
    password: str = Field(..., min_length=1, max_length=72)
    permissions: list[Permission] = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            msg = "password must be at most 72 bytes"
            raise ValueError(msg)
        return v


class LoginRequest(BaseModel):
    """Request body for POST /restaurants/{id}/auth/login."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(..., min_length=1, max_length=72)


class RegisterResponse(BaseModel):
    user_id: uuid.UUID


class TokenResponse(BaseModel):
    token: str


# --- Pagination ---


def total_pages(total_items: int, limit: int) -> int:
    """Ceiling division; zero when ``limit`` is zero."""
    if limit <= 0:
        return 0
    return (total_items + limit - 1) // limit


# --- Restaurant ---


class RestaurantCreateRequest(BaseModel):
    """Request body for POST /restaurants."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    image_url: str = Field(..., alias="imageUrl", min_length=1, max_length=200)


class RestaurantUpdateRequest(BaseModel):
    """Request body for PATCH /restaurants/{id}. Omitted fields are kept."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    image_url: str | None = Field(
        default=None, alias="imageUrl", min_length=1, max_length=200
    )


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    name: str
    description: str
    location: str
    image_url: str = Field(alias="imageUrl")


class RestaurantListResponse(BaseModel):
    """One page of restaurants with pagination metadata."""

    restaurants: list[RestaurantResponse]
    current_page: int
    total_pages: int
    total_items: int


# --- Dish ---


class DishResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    name: str
    description: str
    price: float
    image_url: str | None = Field(default=None, alias="imageUrl")


class DishListResponse(BaseModel):
    """One page of dishes with pagination metadata.

    Example::

        {
            "dishes": [{"id": "...", "name": "Second breakfast", ...}],
            "current_page": 1,
            "total_pages": 3,
            "total_items": 25
        }
    """

    dishes: list[DishResponse]
    current_page: int
    total_pages: int
    total_items: int


class RateDishRequest(BaseModel):
    """Request body for POST /dishes/{id}/rate."""

    rating: int = Field(..., ge=1, le=5)


class RatingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    rating: int
    dish_id: uuid.UUID = Field(alias="dishId")
