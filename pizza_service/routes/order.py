"""
Order routes: the menu and diner orders.

Placing an order persists it first, then submits it to the factory.
A factory failure answers 500 with the factory's report link; the stored
order is kept and nothing is retried.
"""

import logging

from fastapi import APIRouter, Depends, Query

from pizza_service.core.exceptions import ForbiddenError, UpstreamFailureError
from pizza_service.dependencies import authenticate_token, get_database, set_auth_user
from pizza_service.repository import DB
from pizza_service.roles import AuthUser, RoleName
from pizza_service.schemas import (
    MenuItemCreate,
    MenuItemOut,
    OrderCreate,
    OrderPlacedResponse,
    OrdersPage,
)
from pizza_service.services.factory import BaseFactoryService, get_factory_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/order",
    tags=["Orders"],
    dependencies=[Depends(set_auth_user)],
)


@router.get("/menu", response_model=list[MenuItemOut], summary="Get the pizza menu")
async def get_menu(db: DB = Depends(get_database)) -> list[MenuItemOut]:
    return await db.get_menu()


@router.put("/menu", response_model=list[MenuItemOut], summary="Add an item to the menu")
async def add_menu_item(
    item: MenuItemCreate,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> list[MenuItemOut]:
    if not user.is_role(RoleName.ADMIN):
        raise ForbiddenError("unable to add menu item")

    await db.add_menu_item(item)
    return await db.get_menu()


@router.get("", response_model=OrdersPage, summary="Get the orders for the authenticated user")
async def get_orders(
    page: int = Query(1, ge=1),
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
) -> OrdersPage:
    return await db.get_orders(user, page)


@router.post("", response_model=OrderPlacedResponse, summary="Create an order for the authenticated user")
async def create_order(
    order_request: OrderCreate,
    user: AuthUser = Depends(authenticate_token),
    db: DB = Depends(get_database),
    factory: BaseFactoryService = Depends(get_factory_service),
) -> OrderPlacedResponse:
    order = await db.add_diner_order(user, order_request)

    result = await factory.submit_order(
        diner={"id": user.id, "name": user.name, "email": user.email},
        order=order.model_dump(mode="json", by_alias=True),
    )

    if not result.success:
        logger.warning(
            f"Order #{order.id} failed at factory: {result.error_message} "
            f"(report={result.report_url})"
        )
        raise UpstreamFailureError(report_url=result.report_url)

    logger.info(f"Order #{order.id} fulfilled for diner #{user.id}")
    return OrderPlacedResponse(
        order=order,
        follow_link_to_end_chaos=result.report_url,
        jwt=result.jwt,
    )
