"""
Pydantic Schemas for Request/Response Validation

All JSON crosses the wire in camelCase (``franchiseId``, ``totalRevenue``);
Python code uses the snake_case attribute names.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
)
from pydantic.alias_generators import to_camel

from pizza_service.roles import Role, RoleName, make_role, role_to_dict


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CompactModel(CamelModel):
    """Drops null fields when serialized (optional parts of a listing)."""

    @model_serializer(mode="wrap")
    def _omit_none(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        return {k: v for k, v in handler(self).items() if v is not None}


# =============================================================================
# ROLES & USERS
# =============================================================================

class RoleAssignment(CamelModel):
    """
    Role requested when creating a user.

    For franchisee roles ``object`` is the franchise *name*; it is resolved
    to the franchise id when the user is stored.
    """
    role: RoleName
    object: Optional[str] = None


class RoleOut(CompactModel):
    role: RoleName
    object_id: Optional[int] = None

    @classmethod
    def from_role(cls, role: Role) -> "RoleOut":
        data = role_to_dict(role)
        return cls(role=data["role"], object_id=data.get("objectId"))

    def to_role(self) -> Role:
        return make_role(self.role, self.object_id)


class UserCreate(CamelModel):
    name: str
    email: str
    password: str
    roles: List[RoleAssignment] = Field(
        default_factory=lambda: [RoleAssignment(role=RoleName.DINER)]
    )


class UserOut(CamelModel):
    """A user as returned by the API (never carries the password)."""
    id: int
    name: str
    email: str
    roles: List[RoleOut] = Field(default_factory=list)

    def to_claims(self) -> dict[str, Any]:
        """Token payload for this user."""
        return self.model_dump(mode="json", by_alias=True)


class RegisterRequest(BaseModel):
    # Optional so a missing field answers 400 with a readable message
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class AuthResponse(BaseModel):
    user: UserOut
    token: str


# =============================================================================
# MENU & ORDERS
# =============================================================================

class MenuItemCreate(CamelModel):
    title: str = Field(..., min_length=1, examples=["Veggie"])
    description: str = Field(..., examples=["A garden of delight"])
    image: str = Field(..., examples=["pizza1.png"])
    price: float = Field(..., ge=0, examples=[0.0038])


class MenuItemOut(MenuItemCreate):
    id: int


class OrderItemCreate(CamelModel):
    menu_id: int
    description: str
    price: float


class OrderItemOut(OrderItemCreate):
    id: Optional[int] = None


class OrderCreate(CamelModel):
    franchise_id: int
    store_id: int
    items: List[OrderItemCreate] = Field(default_factory=list)


class OrderOut(CamelModel):
    id: int
    franchise_id: int
    store_id: int
    date: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)


class OrdersPage(CamelModel):
    diner_id: int
    orders: List[OrderOut]
    page: int


class OrderPlacedResponse(CamelModel):
    order: OrderOut
    follow_link_to_end_chaos: Optional[str] = None
    jwt: Optional[str] = None


# =============================================================================
# FRANCHISES & STORES
# =============================================================================

class FranchiseAdminRef(BaseModel):
    email: str


class FranchiseCreate(BaseModel):
    name: str = Field(..., min_length=1)
    admins: List[FranchiseAdminRef] = Field(default_factory=list)


class StoreCreate(BaseModel):
    name: str = Field(..., min_length=1)


class AdminOut(CamelModel):
    id: int
    name: str
    email: str


class StoreOut(CompactModel):
    id: int
    name: str
    franchise_id: Optional[int] = None
    total_revenue: float = 0.0


class FranchiseOut(CompactModel):
    """
    A franchise. ``admins`` and ``stores`` are None in the lightweight
    listing shown to non-admins, and are then left out of the JSON.
    """
    id: int
    name: str
    admins: Optional[List[AdminOut]] = None
    stores: Optional[List[StoreOut]] = None


class FranchiseList(BaseModel):
    franchises: List[FranchiseOut]
    more: bool


# =============================================================================
# GENERIC RESPONSES
# =============================================================================

class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    database: str
    factory_service: str
    timestamp: datetime
