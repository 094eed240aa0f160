"""API routers, one per resource."""

from pizza_service.routes.auth import router as auth_router
from pizza_service.routes.franchise import router as franchise_router
from pizza_service.routes.order import router as order_router
from pizza_service.routes.user import router as user_router

__all__ = ["auth_router", "franchise_router", "order_router", "user_router"]
