"""
User Roles

A role is one of three shapes:

    Diner                      - places orders
    Admin                      - manages franchises and the menu
    FranchiseAdmin(franchise)  - manages the stores of one franchise

On the wire a role is ``{"role": "diner"}`` / ``{"role": "admin"}`` /
``{"role": "franchisee", "objectId": 7}``.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Optional, Union


class RoleName(str, enum.Enum):
    DINER = "diner"
    FRANCHISEE = "franchisee"
    ADMIN = "admin"


@dataclass(frozen=True)
class Diner:
    name: ClassVar[RoleName] = RoleName.DINER


@dataclass(frozen=True)
class Admin:
    name: ClassVar[RoleName] = RoleName.ADMIN


@dataclass(frozen=True)
class FranchiseAdmin:
    franchise_id: int
    name: ClassVar[RoleName] = RoleName.FRANCHISEE


Role = Union[Diner, Admin, FranchiseAdmin]


def make_role(role: Union[RoleName, str], object_id: Optional[int] = None) -> Role:
    """Build a role from its stored form (name + optional object id)."""
    role = RoleName(role)
    if role == RoleName.FRANCHISEE:
        if object_id is None:
            raise ValueError("franchisee role requires a franchise id")
        return FranchiseAdmin(franchise_id=int(object_id))
    if role == RoleName.ADMIN:
        return Admin()
    return Diner()


def role_from_dict(data: dict[str, Any]) -> Role:
    return make_role(data["role"], data.get("objectId"))


def role_to_dict(role: Role) -> dict[str, Any]:
    if isinstance(role, FranchiseAdmin):
        return {"role": role.name.value, "objectId": role.franchise_id}
    return {"role": role.name.value}


def has_role(
    user: Any,
    role: Union[RoleName, str],
    scope_id: Optional[int] = None,
) -> bool:
    """
    Check whether ``user`` holds ``role``.

    Args:
        user: Anything with a ``roles`` iterable of Role values
        role: Role name to look for
        scope_id: When given, a franchisee role only matches if it is
            scoped to this franchise id

    Returns:
        True if a matching role is present
    """
    wanted = RoleName(role)
    roles: Iterable[Role] = getattr(user, "roles", None) or ()
    for held in roles:
        if held.name != wanted:
            continue
        if scope_id is None:
            return True
        if isinstance(held, FranchiseAdmin) and held.franchise_id == int(scope_id):
            return True
    return False


@dataclass(frozen=True)
class AuthUser:
    """The authenticated principal attached to a request."""

    id: int
    name: str
    email: str
    roles: tuple[Role, ...] = field(default_factory=tuple)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "AuthUser":
        return cls(
            id=int(claims["id"]),
            name=claims.get("name") or "",
            email=claims.get("email") or "",
            roles=tuple(role_from_dict(r) for r in claims.get("roles", [])),
        )

    def is_role(self, role: Union[RoleName, str], scope_id: Optional[int] = None) -> bool:
        return has_role(self, role, scope_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "roles": [role_to_dict(r) for r in self.roles],
        }
