"""
Franchise routes: listing, creation and deletion of franchises and stores.

Authorization:
    - create/delete franchise: admin
    - create/delete store: admin, or one of the franchise's admins
    - franchises of a given user: that user or an admin
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pizza_service.core.exceptions import ForbiddenError, NotFoundError
from pizza_service.dependencies import authenticate_token, get_database, set_auth_user
from pizza_service.repository import DB
from pizza_service.roles import AuthUser, RoleName
from pizza_service.schemas import (
    FranchiseCreate,
    FranchiseList,
    FranchiseOut,
    MessageResponse,
    StoreCreate,
    StoreOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/franchise",
    tags=["Franchises"],
    dependencies=[Depends(set_auth_user)],
)


async def _require_store_manager(
    db: DB,
    user: AuthUser,
    franchise_id: int,
    action: str,
) -> FranchiseOut:
    """The franchise, if ``user`` may manage its stores; 403 otherwise."""
    try:
        franchise = await db.get_franchise(franchise_id)
    except NotFoundError:
        raise ForbiddenError(f"unable to {action} a store") from None

    if user.is_role(RoleName.ADMIN):
        return franchise
    if any(admin.id == user.id for admin in franchise.admins or []):
        return franchise
    raise ForbiddenError(f"unable to {action} a store")


@router.get("", response_model=FranchiseList, summary="List pizza franchises")
async def list_franchises(
    page: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    name: Optional[str] = Query(None),
    user: Optional[AuthUser] = Depends(set_auth_user),
    db: DB = Depends(get_database),
) -> FranchiseList:
    franchises, more = await db.get_franchises(user, page, limit, name)
    return FranchiseList(franchises=franchises, more=more)


@router.get("/{user_id}", response_model=list[FranchiseOut], summary="List a user's franchises")
async def list_user_franchises(
    user_id: int,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> list[FranchiseOut]:
    if user.id == user_id or user.is_role(RoleName.ADMIN):
        return await db.get_user_franchises(user_id)
    return []


@router.post("", response_model=FranchiseOut, summary="Create a new franchise")
async def create_franchise(
    franchise: FranchiseCreate,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> FranchiseOut:
    if not user.is_role(RoleName.ADMIN):
        raise ForbiddenError("unable to create a franchise")
    return await db.create_franchise(franchise)


@router.delete("/{franchise_id}", response_model=MessageResponse, summary="Delete a franchise")
async def delete_franchise(
    franchise_id: int,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> MessageResponse:
    if not user.is_role(RoleName.ADMIN):
        raise ForbiddenError("unable to delete a franchise")
    await db.delete_franchise(franchise_id)
    return MessageResponse(message="franchise deleted")


@router.post("/{franchise_id}/store", response_model=StoreOut, summary="Create a new franchise store")
async def create_store(
    franchise_id: int,
    store: StoreCreate,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> StoreOut:
    await _require_store_manager(db, user, franchise_id, "create")
    return await db.create_store(franchise_id, store)


@router.delete(
    "/{franchise_id}/store/{store_id}",
    response_model=MessageResponse,
    summary="Delete a store",
)
async def delete_store(
    franchise_id: int,
    store_id: int,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> MessageResponse:
    await _require_store_manager(db, user, franchise_id, "delete")
    await db.delete_store(franchise_id, store_id)
    return MessageResponse(message="store deleted")
