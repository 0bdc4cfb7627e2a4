"""User and login API routes.

- POST /login → username/password → opaque bearer token (open route)
- POST /logout → revoke the presented token
- POST /users → create a user (admins only)
- PUT /users → partial update of the caller, or of `id` for admins
- GET /users → the caller, or ?user_id= for admins
- GET /users/list → all users, paginated (admins only)
- DELETE /users/{id} → delete a user and the projects they own
- GET /users/available/{username} → is the name still free
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from foxboard.api.pagination import get_pagination
from foxboard.auth.dependencies import (
    AuthenticatedUser,
    client_metadata,
    get_current_user,
)
from foxboard.db.engine import get_db
from foxboard.schemas.common import Page, Pagination, SuccessRead
from foxboard.schemas.user import (
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from foxboard.services.user_service import UserService

# Open: mounted without the auth dependency
login_router = APIRouter()
router = APIRouter()


def _svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


# ─── Login / logout ─────────────────────────────────────

@login_router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, svc: UserService = Depends(_svc)):
    user_agent, ip_addr = client_metadata(request)
    token = await svc.login(body.username, body.password, user_agent, ip_addr)
    return TokenResponse(token=token)


@router.post("/logout", response_model=SuccessRead)
async def logout(
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    await svc.logout(identity)
    return SuccessRead(success=True)


# ─── Users ──────────────────────────────────────────────

@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    return await svc.create_user(identity, body.username, body.password, body.is_admin)


@router.put("/users", response_model=UserRead)
async def update_user(
    body: UserUpdate,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    return await svc.update_user(identity, body)


@router.get("/users", response_model=UserRead)
async def get_user(
    user_id: Optional[uuid.UUID] = None,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    return await svc.get_user(identity, user_id)


@router.get("/users/list", response_model=Page[UserRead])
async def list_users(
    pag: Pagination = Depends(get_pagination),
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    total, users = await svc.list_users(identity, pag)
    return Page[UserRead].build(
        [UserRead.model_validate(u) for u in users], pag, total
    )


@router.get("/users/available/{username}", response_model=SuccessRead)
async def username_available(username: str, svc: UserService = Depends(_svc)):
    return SuccessRead(success=await svc.username_available(username))


@router.delete("/users/{user_id}", response_model=SuccessRead)
async def delete_user(
    user_id: uuid.UUID,
    identity: AuthenticatedUser = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    await svc.delete_user(identity, user_id)
    return SuccessRead(success=True)
