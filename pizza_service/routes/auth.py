"""
Auth routes: register, login, logout.

Every successful register/login/profile update issues a fresh token and
records its signature as a live session; logout removes it.
"""

import logging

from fastapi import APIRouter, Depends, Request

from pizza_service.core.exceptions import ValidationError
from pizza_service.core.security import create_token
from pizza_service.dependencies import (
    authenticate_token,
    get_database,
    read_auth_token,
    set_auth_user,
)
from pizza_service.repository import DB
from pizza_service.roles import AuthUser, RoleName
from pizza_service.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RoleAssignment,
    UserCreate,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Auth"],
    dependencies=[Depends(set_auth_user)],
)


async def set_auth(user: UserOut, db: DB) -> str:
    """Sign a token for ``user`` and record it as logged in."""
    token = create_token(user.to_claims())
    await db.login_user(user.id, token)
    return token


@router.post("", response_model=AuthResponse, summary="Register a new user")
async def register(
    body: RegisterRequest,
    db: DB = Depends(get_database),
) -> AuthResponse:
    if not body.name or not body.email or not body.password:
        raise ValidationError("name, email, and password are required")

    user = await db.add_user(UserCreate(
        name=body.name,
        email=body.email,
        password=body.password,
        roles=[RoleAssignment(role=RoleName.DINER)],
    ))
    token = await set_auth(user, db)
    logger.info(f"Registered diner #{user.id}")
    return AuthResponse(user=user, token=token)


@router.put("", response_model=AuthResponse, summary="Login existing user")
async def login(
    body: LoginRequest,
    db: DB = Depends(get_database),
) -> AuthResponse:
    user = await db.get_user(body.email, body.password)
    token = await set_auth(user, db)
    logger.info(f"User #{user.id} logged in")
    return AuthResponse(user=user, token=token)


@router.delete("", response_model=MessageResponse, summary="Logout a user")
async def logout(
    request: Request,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> MessageResponse:
    token = read_auth_token(request)
    if token:
        await db.logout_user(token)
    logger.info(f"User #{user.id} logged out")
    return MessageResponse(message="logout successful")
