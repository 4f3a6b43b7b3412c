"""Registration and login endpoints, scoped to a restaurant."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dancing_pony.api.deps import get_session, get_token_service
from dancing_pony.api.schemas import (
    APIResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from dancing_pony.auth.pipeline import limit_by_ip
from dancing_pony.auth.tenant import get_tenant_id
from dancing_pony.auth.tokens import TokenService
from dancing_pony.services.auth import AuthService

router = APIRouter(
    prefix="/restaurants/{restaurant_id}/auth",
    tags=["auth"],
)

TenantDep = Annotated[uuid.UUID, Depends(get_tenant_id)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]
TokensDep = Annotated[TokenService, Depends(get_token_service)]
IPLimitDep = Annotated[None, Depends(limit_by_ip)]


@router.post("/register")
async def register(
    body: RegisterRequest,
    tenant_id: TenantDep,
    _limit: IPLimitDep,
    session: SessionDep,
    tokens: TokensDep,
) -> APIResponse[RegisterResponse]:
    """Register a user in the restaurant.

    Returns 409 if the email is already registered in this restaurant.
    """
    service = AuthService(session, tokens)
    user = await service.register(
        tenant_id,
        name=body.name,
        email=body.email,
        password=body.password,
        permissions=[str(p) for p in body.permissions],
    )
    return APIResponse(
        message="Registration successful",
        data=RegisterResponse(user_id=user.id),
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    tenant_id: TenantDep,
    _limit: IPLimitDep,
    session: SessionDep,
    tokens: TokensDep,
) -> APIResponse[TokenResponse]:
    """Exchange email and password for a 24h session token."""
    service = AuthService(session, tokens)
    token = await service.login(tenant_id, email=body.email, password=body.password)
    return APIResponse(message="Login successful", data=TokenResponse(token=token))
