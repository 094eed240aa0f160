"""
FastAPI dependencies shared by the routers.

Authentication works in two steps:
    - ``set_auth_user`` runs on every route. It never fails: a missing,
      malformed, forged or logged-out token just leaves the request
      anonymous (``request.state.user = None``).
    - ``authenticate_token`` is added to routes that need a user and
      answers 401 when there is none.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from pizza_service.core.exceptions import UnauthenticatedError
from pizza_service.core.security import decode_token
from pizza_service.repository import DB
from pizza_service.roles import AuthUser

logger = logging.getLogger(__name__)


@lru_cache()
def get_database() -> DB:
    """The process-wide data-access layer (one connection pool)."""
    return DB()


def reset_database() -> None:
    get_database.cache_clear()


def read_auth_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, if well formed."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def set_auth_user(
    request: Request,
    db: DB = Depends(get_database),
) -> Optional[AuthUser]:
    """Attach the caller (or None) to ``request.state.user``."""
    request.state.user = None
    request.state.token = None

    token = read_auth_token(request)
    if token is None:
        return None

    claims = decode_token(token)
    if claims is None:
        return None

    if not await db.is_logged_in(token):
        logger.warning(f"Token for user #{claims.get('id')} is no longer logged in")
        return None

    try:
        user = AuthUser.from_claims(claims)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Token carries unusable claims: {e}")
        return None

    request.state.user = user
    request.state.token = token
    return user


async def authenticate_token(
    user: Optional[AuthUser] = Depends(set_auth_user),
) -> AuthUser:
    if user is None:
        raise UnauthenticatedError()
    return user
