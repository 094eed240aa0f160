"""
Password hashing and JSON Web Token helpers.

Thin wrappers over passlib (bcrypt) and python-jose so the rest of the
service never touches the libraries directly.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from pizza_service.core.config import get_settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_token(claims: dict[str, Any]) -> str:
    """
    Sign a session token.

    Args:
        claims: JSON-serializable payload (user id, name, email, roles)

    Returns:
        Compact JWS string ``header.payload.signature``
    """
    settings = get_settings()
    to_encode = dict(claims)
    to_encode["iat"] = int(datetime.now(timezone.utc).timestamp())
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify a token's signature and return its claims.

    Returns:
        The decoded claims, or None when the token is malformed or forged
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning(f"Rejected token: {e}")
        return None
