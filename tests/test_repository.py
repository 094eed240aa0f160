import asyncio

import pytest
from sqlalchemy import Delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_service.core.exceptions import (
    DatabaseNotReadyError,
    NotFoundError,
    UnauthenticatedError,
)
from pizza_service.models import Franchise, Store, User, UserRole
from pizza_service.repository import DB, extract_signature, get_offset
from pizza_service.roles import AuthUser, Diner, RoleName
from pizza_service.schemas import (
    FranchiseAdminRef,
    FranchiseCreate,
    MenuItemCreate,
    OrderCreate,
    OrderItemCreate,
    RoleAssignment,
    StoreCreate,
    UserCreate,
)


async def register(db: DB, name: str, email: str, password: str = "pw", roles=None) -> AuthUser:
    user = await db.add_user(UserCreate(
        name=name,
        email=email,
        password=password,
        roles=roles or [RoleAssignment(role=RoleName.DINER)],
    ))
    return AuthUser(id=user.id, name=user.name, email=user.email, roles=(Diner(),))


async def add_menu(db: DB) -> list[int]:
    veggie = await db.add_menu_item(MenuItemCreate(
        title="Veggie", description="A garden of delight", image="pizza1.png", price=0.0038,
    ))
    pepperoni = await db.add_menu_item(MenuItemCreate(
        title="Pepperoni", description="Spicy treat", image="pizza2.png", price=0.0042,
    ))
    return [veggie.id, pepperoni.id]


def order_for(menu_ids: list[int], franchise_id: int = 1, store_id: int = 1) -> OrderCreate:
    return OrderCreate(
        franchise_id=franchise_id,
        store_id=store_id,
        items=[
            OrderItemCreate(menu_id=menu_ids[0], description="Veggie", price=0.05),
            OrderItemCreate(menu_id=menu_ids[1], description="Pepperoni", price=0.07),
        ],
    )


async def count_rows(db: DB, model) -> int:
    async with db._session() as session:
        return await session.scalar(select(func.count()).select_from(model))


# =============================================================================
# HELPERS
# =============================================================================

@pytest.mark.parametrize("page,size,expected", [(1, 10, 0), (2, 10, 10), (3, 5, 10), (7, 1, 6)])
def test_get_offset(page, size, expected):
    assert get_offset(page, size) == expected


def test_extract_signature():
    assert extract_signature("aaa.bbb.ccc") == "ccc"
    assert extract_signature("invalid") == ""
    assert extract_signature("") == ""


# =============================================================================
# LIFECYCLE
# =============================================================================

async def test_operations_before_initialize_are_rejected():
    database = DB()
    try:
        assert not database.is_ready
        with pytest.raises(DatabaseNotReadyError):
            await database.get_menu()
    finally:
        await database.close()


async def test_initialize_is_idempotent_and_seeds_one_admin():
    database = DB()
    try:
        await asyncio.gather(*(database.initialize() for _ in range(5)))
        await database.initialize()

        assert database.is_ready
        assert await database.health_check()
        assert await count_rows(database, User) == 1

        admin = await database.get_user("a@jwt.com", "admin")
        assert [r.role for r in admin.roles] == [RoleName.ADMIN]
    finally:
        await database.close()


# =============================================================================
# USERS & SESSIONS
# =============================================================================

async def test_add_user_then_get_user_round_trip(db):
    created = await db.add_user(UserCreate(name="pizza diner", email="d@jwt.com", password="diner"))

    fetched = await db.get_user("d@jwt.com", "diner")

    assert fetched.id == created.id
    assert fetched.roles == created.roles
    assert [r.role for r in fetched.roles] == [RoleName.DINER]
    assert "password" not in fetched.model_dump()


async def test_get_user_rejects_bad_credentials(db):
    await register(db, "pizza diner", "d@jwt.com", "diner")

    with pytest.raises(UnauthenticatedError):
        await db.get_user("d@jwt.com", "wrong")
    with pytest.raises(UnauthenticatedError):
        await db.get_user("nobody@jwt.com", "diner")


async def test_franchisee_role_is_stored_against_franchise_id(db):
    franchise = await db.create_franchise(FranchiseCreate(name="pizzaPocket"))

    user = await db.add_user(UserCreate(
        name="franchisee",
        email="f@jwt.com",
        password="franchisee",
        roles=[RoleAssignment(role=RoleName.FRANCHISEE, object="pizzaPocket")],
    ))

    assert [(r.role, r.object_id) for r in user.roles] == [(RoleName.FRANCHISEE, franchise.id)]
    assert [f.id for f in await db.get_user_franchises(user.id)] == [franchise.id]


async def test_franchisee_role_for_unknown_franchise_stores_nothing(db):
    with pytest.raises(NotFoundError) as excinfo:
        await db.add_user(UserCreate(
            name="franchisee",
            email="f@jwt.com",
            password="franchisee",
            roles=[RoleAssignment(role=RoleName.FRANCHISEE, object="nowhere")],
        ))

    assert excinfo.value.value == "nowhere"
    with pytest.raises(UnauthenticatedError):
        await db.get_user("f@jwt.com", "franchisee")


async def test_update_user_changes_only_supplied_fields(db):
    user = await register(db, "pizza diner", "d@jwt.com", "diner")

    updated = await db.update_user(user.id, name="Updated", password="secret")

    assert updated.name == "Updated"
    assert updated.email == "d@jwt.com"
    assert (await db.get_user("d@jwt.com", "secret")).id == user.id
    with pytest.raises(UnauthenticatedError):
        await db.get_user("d@jwt.com", "diner")


async def test_update_unknown_user_is_not_found(db):
    with pytest.raises(NotFoundError):
        await db.update_user(999, name="ghost")


async def test_login_logout_tracks_token_signature(db):
    user = await register(db, "pizza diner", "d@jwt.com")
    token = "header.payload.signature"

    assert not await db.is_logged_in(token)
    await db.login_user(user.id, token)
    await db.login_user(user.id, token)
    assert await db.is_logged_in(token)
    assert await db.is_logged_in("other-header.other-payload.signature")

    await db.logout_user(token)
    assert not await db.is_logged_in(token)


# =============================================================================
# MENU & ORDERS
# =============================================================================

async def test_menu_items_are_listed_in_insertion_order(db):
    ids = await add_menu(db)

    menu = await db.get_menu()

    assert [m.id for m in menu] == ids
    assert menu[0].title == "Veggie"
    assert menu[1].price == pytest.approx(0.0042)


async def test_orders_round_trip_with_items_and_are_scoped_to_diner(db):
    menu_ids = await add_menu(db)
    diner = await register(db, "pizza diner", "d@jwt.com")
    other = await register(db, "other diner", "o@jwt.com")

    placed = await db.add_diner_order(diner, order_for(menu_ids))
    await db.add_diner_order(other, order_for(menu_ids))

    page = await db.get_orders(diner)

    assert page.diner_id == diner.id
    assert page.page == 1
    assert [o.id for o in page.orders] == [placed.id]
    assert [i.description for i in page.orders[0].items] == ["Veggie", "Pepperoni"]
    assert [i.menu_id for i in page.orders[0].items] == menu_ids
    assert page.orders[0].date is not None


async def test_get_orders_paginates(db):
    menu_ids = await add_menu(db)
    diner = await register(db, "pizza diner", "d@jwt.com")
    db.page_size = 2
    placed = [(await db.add_diner_order(diner, order_for(menu_ids))).id for _ in range(5)]

    first = await db.get_orders(diner, 1)
    third = await db.get_orders(diner, 3)
    beyond = await db.get_orders(diner, 4)

    assert [o.id for o in first.orders] == placed[:2]
    assert [o.id for o in third.orders] == placed[4:]
    assert beyond.orders == []


async def test_order_with_unknown_menu_item_is_not_persisted(db):
    menu_ids = await add_menu(db)
    diner = await register(db, "pizza diner", "d@jwt.com")

    with pytest.raises(NotFoundError):
        await db.add_diner_order(diner, order_for([menu_ids[0], 999]))

    assert (await db.get_orders(diner)).orders == []


# =============================================================================
# FRANCHISES & STORES
# =============================================================================

async def test_create_franchise_with_unknown_admin_inserts_nothing(db):
    await register(db, "franchisee", "f@jwt.com")

    with pytest.raises(NotFoundError) as excinfo:
        await db.create_franchise(FranchiseCreate(
            name="pizzaPocket",
            admins=[FranchiseAdminRef(email="f@jwt.com"), FranchiseAdminRef(email="ghost@jwt.com")],
        ))

    assert "ghost@jwt.com" in excinfo.value.message
    assert await count_rows(db, Franchise) == 0
    assert await count_rows(db, UserRole) == 2  # seeded admin + diner


async def test_get_franchise_populates_admins_and_store_revenue(db):
    menu_ids = await add_menu(db)
    franchisee = await register(db, "franchisee", "f@jwt.com")
    diner = await register(db, "pizza diner", "d@jwt.com")
    franchise = await db.create_franchise(FranchiseCreate(
        name="pizzaPocket", admins=[FranchiseAdminRef(email="f@jwt.com")],
    ))
    busy = await db.create_store(franchise.id, StoreCreate(name="SLC"))
    quiet = await db.create_store(franchise.id, StoreCreate(name="Provo"))
    await db.add_diner_order(diner, order_for(menu_ids, franchise.id, busy.id))

    loaded = await db.get_franchise(franchise.id)

    assert [(a.id, a.email) for a in loaded.admins] == [(franchisee.id, "f@jwt.com")]
    revenue = {s.name: s.total_revenue for s in loaded.stores}
    assert revenue["SLC"] == pytest.approx(0.12)
    assert revenue["Provo"] == 0
    assert [s.id for s in loaded.stores] == [busy.id, quiet.id]


async def test_get_franchise_unknown_id(db):
    with pytest.raises(NotFoundError):
        await db.get_franchise(42)


async def test_get_franchises_pages_filters_and_shapes_by_role(db):
    for name in ["pizzaPocket", "pizzaPalace", "burgerBarn"]:
        franchise = await db.create_franchise(FranchiseCreate(name=name))
        await db.create_store(franchise.id, StoreCreate(name=f"{name} SLC"))
    admin = AuthUser.from_claims((await db.get_user("a@jwt.com", "admin")).to_claims())
    diner = await register(db, "pizza diner", "d@jwt.com")

    first, more = await db.get_franchises(diner, page=0, limit=2)
    last, no_more = await db.get_franchises(diner, page=1, limit=2)
    assert [f.name for f in first] == ["pizzaPocket", "pizzaPalace"]
    assert more is True
    assert [f.name for f in last] == ["burgerBarn"]
    assert no_more is False
    assert first[0].stores is None
    assert "stores" not in first[0].model_dump()

    pizzas, _ = await db.get_franchises(admin, name_filter="pizza*")
    assert [f.name for f in pizzas] == ["pizzaPocket", "pizzaPalace"]
    assert [s.name for s in pizzas[0].stores] == ["pizzaPocket SLC"]

    anonymous, _ = await db.get_franchises(None, name_filter="burgerBarn")
    assert [f.name for f in anonymous] == ["burgerBarn"]


async def test_get_user_franchises_empty_for_non_franchisee(db):
    diner = await register(db, "pizza diner", "d@jwt.com")

    assert await db.get_user_franchises(diner.id) == []


async def test_delete_franchise_removes_stores_and_admin_roles(db):
    franchisee = await register(db, "franchisee", "f@jwt.com")
    franchise = await db.create_franchise(FranchiseCreate(
        name="pizzaPocket", admins=[FranchiseAdminRef(email="f@jwt.com")],
    ))
    await db.create_store(franchise.id, StoreCreate(name="SLC"))
    await db.create_store(franchise.id, StoreCreate(name="Provo"))

    await db.delete_franchise(franchise.id)

    assert await count_rows(db, Franchise) == 0
    assert await count_rows(db, Store) == 0
    assert await db.get_user_franchises(franchisee.id) == []


async def test_delete_franchise_failure_leaves_franchise_and_stores(db):
    franchise = await db.create_franchise(FranchiseCreate(name="pizzaPocket"))
    await db.create_store(franchise.id, StoreCreate(name="SLC"))

    real_execute = AsyncSession.execute
    deleted: list[str] = []

    async def failing_execute(self, statement, *args, **kwargs):
        if isinstance(statement, Delete):
            deleted.append(statement.table.name)
            if statement.table.name == Franchise.__tablename__:
                raise RuntimeError("connection lost")
        return await real_execute(self, statement, *args, **kwargs)

    with pytest.MonkeyPatch.context() as patch:
        patch.setattr(AsyncSession, "execute", failing_execute)
        with pytest.raises(RuntimeError):
            await db.delete_franchise(franchise.id)
    assert deleted == ["stores", "user_roles", "franchises"]

    loaded = await db.get_franchise(franchise.id)
    assert [s.name for s in loaded.stores] == ["SLC"]


async def test_delete_store_is_scoped_to_franchise(db):
    first = await db.create_franchise(FranchiseCreate(name="pizzaPocket"))
    second = await db.create_franchise(FranchiseCreate(name="pizzaPalace"))
    store = await db.create_store(first.id, StoreCreate(name="SLC"))

    await db.delete_store(second.id, store.id)
    assert [s.id for s in (await db.get_franchise(first.id)).stores] == [store.id]

    await db.delete_store(first.id, store.id)
    assert (await db.get_franchise(first.id)).stores == []
