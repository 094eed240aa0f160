"""
User routes: the current user and profile updates.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from pizza_service.core.exceptions import ForbiddenError
from pizza_service.dependencies import authenticate_token, get_database, set_auth_user
from pizza_service.repository import DB
from pizza_service.roles import AuthUser, RoleName
from pizza_service.routes.auth import set_auth
from pizza_service.schemas import AuthResponse, MessageResponse, UserOut, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/user",
    tags=["Users"],
    dependencies=[Depends(set_auth_user)],
)


@router.get("/me", response_model=UserOut, summary="Get authenticated user")
async def get_me(user: AuthUser = Depends(authenticate_token)) -> dict[str, Any]:
    return user.to_dict()


@router.put("/{user_id}", response_model=AuthResponse, summary="Update user")
async def update_user(
    user_id: int,
    body: UserUpdate,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> AuthResponse:
    if user.id != user_id and not user.is_role(RoleName.ADMIN):
        raise ForbiddenError("unauthorized")

    updated = await db.update_user(user_id, body.name, body.email, body.password)
    token = await set_auth(updated, db)
    return AuthResponse(user=updated, token=token)


# TODO: implement user deletion and the admin user listing (pagination + name filter)
@router.delete("/{user_id}", response_model=MessageResponse, summary="Delete user")
async def delete_user(
    user_id: int,
    user: AuthUser = Depends(authenticate_token),
) -> MessageResponse:
    return MessageResponse(message="not implemented")


@router.get("", summary="Get users")
async def list_users(user: AuthUser = Depends(authenticate_token)) -> dict[str, Any]:
    return {"message": "not implemented", "users": [], "more": False}
