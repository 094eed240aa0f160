"""
Data-Access Layer

``DB`` wraps the async engine and exposes typed CRUD operations for
users, sessions, the menu, orders, franchises and stores.

Connection model:
    - One pooled engine per DB instance
    - Every public operation borrows a session through ``_session()``
      and always hands it back, including on errors
    - Multi-statement writes run inside ``session.begin()`` and roll back
      as a whole on any failure

Startup:
    ``await db.initialize()`` must complete before the service takes
    traffic. It is idempotent and safe under concurrent callers.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pizza_service.core.config import Settings, get_settings
from pizza_service.core.exceptions import (
    DatabaseNotReadyError,
    NotFoundError,
    UnauthenticatedError,
)
from pizza_service.core.security import hash_password, verify_password
from pizza_service.database import Base, build_engine, ensure_database_exists
from pizza_service.models import (
    AuthToken,
    DinerOrder,
    Franchise,
    MenuItem,
    OrderItem,
    Store,
    User,
    UserRole,
)
from pizza_service.roles import AuthUser, RoleName, make_role
from pizza_service.schemas import (
    AdminOut,
    FranchiseCreate,
    FranchiseOut,
    MenuItemCreate,
    MenuItemOut,
    OrderCreate,
    OrderItemOut,
    OrderOut,
    OrdersPage,
    RoleAssignment,
    RoleOut,
    StoreCreate,
    StoreOut,
    UserCreate,
    UserOut,
)

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def get_offset(page: int, page_size: int) -> int:
    """Row offset of a 1-based ``page``."""
    return (page - 1) * page_size


def extract_signature(token: str) -> str:
    """
    Session marker of a token: its last dot-delimited segment.

    >>> extract_signature("aaa.bbb.ccc")
    'ccc'
    >>> extract_signature("invalid")
    ''
    """
    parts = (token or "").split(".")
    if len(parts) > 2:
        return parts[-1]
    return ""


# =============================================================================
# DATA-ACCESS LAYER
# =============================================================================

class DB:
    """Pooled, typed access to the pizza database."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.database_url = database_url or self.settings.database_url
        self.page_size = self.settings.orders_page_size

        self.engine = build_engine(self.database_url, self.settings)
        self._session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._init_lock = asyncio.Lock()
        self._ready = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        """
        Prepare the database: create it if missing, create the tables and
        seed the default admin into an empty user table.
        """
        if self._ready:
            return
        async with self._init_lock:
            if self._ready:
                return

            created = await ensure_database_exists(self.database_url, self.settings)
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._ready = True
            try:
                await self._seed_default_admin()
            except Exception:
                self._ready = False
                raise
            logger.info(
                f"Database ready (created={created}, page_size={self.page_size})"
            )

    async def close(self) -> None:
        await self.engine.dispose()
        self._ready = False

    async def health_check(self) -> bool:
        """Round-trip a trivial query through the pool."""
        async with self._session() as session:
            await session.execute(select(1))
        return True

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if not self._ready:
            raise DatabaseNotReadyError()
        async with self._session_maker() as session:
            yield session

    async def _seed_default_admin(self) -> None:
        async with self._session() as session:
            count = await session.scalar(select(func.count(User.id)))
        if count:
            return
        admin = UserCreate(
            name=self.settings.default_admin_name,
            email=self.settings.default_admin_email,
            password=self.settings.default_admin_password,
            roles=[RoleAssignment(role=RoleName.ADMIN)],
        )
        await self.add_user(admin)
        logger.info(f"Seeded default admin {admin.email}")

    async def _get_id(
        self,
        session: AsyncSession,
        model: Any,
        key: str,
        value: Any,
    ) -> int:
        """Id of the first ``model`` row whose ``key`` equals ``value``."""
        result = await session.execute(
            select(model.id).where(getattr(model, key) == value).limit(1)
        )
        row_id = result.scalar_one_or_none()
        if row_id is None:
            raise NotFoundError(
                f"No ID found for {model.__tablename__}.{key}={value}",
                key=key,
                value=value,
            )
        return row_id

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def _load_roles(self, session: AsyncSession, user_id: int) -> list[RoleOut]:
        result = await session.execute(
            select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.id)
        )
        return [
            RoleOut(role=r.role, object_id=r.object_id)
            for r in result.scalars().all()
        ]

    async def add_user(self, user: UserCreate) -> UserOut:
        """
        Store a new user with its roles.

        Raises:
            NotFoundError: A franchisee role names an unknown franchise
        """
        async with self._session() as session:
            async with session.begin():
                row = User(
                    name=user.name,
                    email=user.email,
                    password=hash_password(user.password),
                )
                session.add(row)
                await session.flush()

                roles: list[RoleOut] = []
                for assignment in user.roles:
                    object_id = None
                    if assignment.role == RoleName.FRANCHISEE:
                        object_id = await self._get_id(
                            session, Franchise, "name", assignment.object
                        )
                    session.add(UserRole(
                        user_id=row.id,
                        role=assignment.role,
                        object_id=object_id,
                    ))
                    roles.append(RoleOut.from_role(make_role(assignment.role, object_id)))

        logger.info(f"User #{row.id} created ({user.email})")
        return UserOut(id=row.id, name=row.name, email=row.email, roles=roles)

    async def get_user(self, email: str, password: str) -> UserOut:
        """
        Fetch a user by credentials.

        Raises:
            UnauthenticatedError: Unknown email or wrong password
        """
        async with self._session() as session:
            result = await session.execute(select(User).where(User.email == email))
            row = result.scalar_one_or_none()
            if row is None or not verify_password(password or "", row.password):
                raise UnauthenticatedError("unknown user")
            roles = await self._load_roles(session, row.id)
        return UserOut(id=row.id, name=row.name, email=row.email, roles=roles)

    async def get_user_by_id(self, user_id: int) -> UserOut:
        async with self._session() as session:
            row = await session.get(User, user_id)
            if row is None:
                raise NotFoundError("unknown user", key="id", value=user_id)
            roles = await self._load_roles(session, row.id)
        return UserOut(id=row.id, name=row.name, email=row.email, roles=roles)

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> UserOut:
        """Update the supplied profile fields and return the refreshed user."""
        values: dict[str, Any] = {}
        if name:
            values["name"] = name
        if email:
            values["email"] = email
        if password:
            values["password"] = hash_password(password)

        if values:
            async with self._session() as session:
                async with session.begin():
                    await session.execute(
                        update(User).where(User.id == user_id).values(**values)
                    )
            logger.info(f"User #{user_id} updated ({', '.join(sorted(values))})")

        return await self.get_user_by_id(user_id)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def login_user(self, user_id: int, token: str) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.merge(AuthToken(token=extract_signature(token), user_id=user_id))

    async def is_logged_in(self, token: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(AuthToken.user_id).where(AuthToken.token == extract_signature(token))
            )
            return result.first() is not None

    async def logout_user(self, token: str) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    delete(AuthToken).where(AuthToken.token == extract_signature(token))
                )

    # -------------------------------------------------------------------------
    # Menu
    # -------------------------------------------------------------------------

    async def get_menu(self) -> list[MenuItemOut]:
        async with self._session() as session:
            result = await session.execute(select(MenuItem).order_by(MenuItem.id))
            return [MenuItemOut.model_validate(item) for item in result.scalars().all()]

    async def add_menu_item(self, item: MenuItemCreate) -> MenuItemOut:
        async with self._session() as session:
            async with session.begin():
                row = MenuItem(**item.model_dump())
                session.add(row)
                await session.flush()
        logger.info(f"Menu item #{row.id} added ({row.title})")
        return MenuItemOut.model_validate(row)

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def get_orders(self, user: AuthUser, page: Optional[int] = None) -> OrdersPage:
        """One page of the user's orders, each with its items."""
        page = page or 1
        offset = get_offset(page, self.page_size)

        async with self._session() as session:
            result = await session.execute(
                select(DinerOrder)
                .where(DinerOrder.diner_id == user.id)
                .order_by(DinerOrder.id)
                .offset(offset)
                .limit(self.page_size)
            )
            orders = result.scalars().all()

            items_by_order: dict[int, list[OrderItemOut]] = defaultdict(list)
            if orders:
                result = await session.execute(
                    select(OrderItem)
                    .where(OrderItem.order_id.in_([o.id for o in orders]))
                    .order_by(OrderItem.id)
                )
                for item in result.scalars().all():
                    items_by_order[item.order_id].append(OrderItemOut.model_validate(item))

        return OrdersPage(
            diner_id=user.id,
            page=page,
            orders=[
                OrderOut(
                    id=o.id,
                    franchise_id=o.franchise_id,
                    store_id=o.store_id,
                    date=o.date,
                    items=items_by_order[o.id],
                )
                for o in orders
            ],
        )

    async def add_diner_order(self, user: AuthUser, order: OrderCreate) -> OrderOut:
        """
        Persist an order and its items atomically.

        Raises:
            NotFoundError: An item references an unknown menu id
        """
        async with self._session() as session:
            async with session.begin():
                row = DinerOrder(
                    diner_id=user.id,
                    franchise_id=order.franchise_id,
                    store_id=order.store_id,
                )
                session.add(row)
                await session.flush()

                items: list[OrderItem] = []
                for item in order.items:
                    menu_id = await self._get_id(session, MenuItem, "id", item.menu_id)
                    item_row = OrderItem(
                        order_id=row.id,
                        menu_id=menu_id,
                        description=item.description,
                        price=item.price,
                    )
                    session.add(item_row)
                    items.append(item_row)
                await session.flush()
                await session.refresh(row, attribute_names=["date"])

        logger.info(f"Order #{row.id} stored for diner #{user.id} ({len(items)} items)")
        return OrderOut(
            id=row.id,
            franchise_id=row.franchise_id,
            store_id=row.store_id,
            date=row.date,
            items=[OrderItemOut.model_validate(i) for i in items],
        )

    # -------------------------------------------------------------------------
    # Franchises
    # -------------------------------------------------------------------------

    async def _populate_franchise(self, session: AsyncSession, franchise: Franchise) -> FranchiseOut:
        """Attach admins and stores (with revenue) to a franchise row."""
        result = await session.execute(
            select(User.id, User.name, User.email)
            .join(UserRole, UserRole.user_id == User.id)
            .where(
                UserRole.object_id == franchise.id,
                UserRole.role == RoleName.FRANCHISEE,
            )
            .order_by(User.id)
        )
        admins = [AdminOut(id=r.id, name=r.name, email=r.email) for r in result.all()]

        revenue = func.coalesce(func.sum(OrderItem.price), 0.0).label("total_revenue")
        result = await session.execute(
            select(Store.id, Store.name, revenue)
            .outerjoin(DinerOrder, DinerOrder.store_id == Store.id)
            .outerjoin(OrderItem, OrderItem.order_id == DinerOrder.id)
            .where(Store.franchise_id == franchise.id)
            .group_by(Store.id, Store.name)
            .order_by(Store.id)
        )
        stores = [
            StoreOut(id=r.id, name=r.name, total_revenue=float(r.total_revenue))
            for r in result.all()
        ]
        return FranchiseOut(id=franchise.id, name=franchise.name, admins=admins, stores=stores)

    async def create_franchise(self, franchise: FranchiseCreate) -> FranchiseOut:
        """
        Create a franchise and make each listed user one of its admins.

        Raises:
            NotFoundError: An admin email does not belong to any user
        """
        async with self._session() as session:
            async with session.begin():
                # Resolve every admin before anything is written
                admins: list[AdminOut] = []
                for admin in franchise.admins:
                    result = await session.execute(
                        select(User.id, User.name, User.email).where(User.email == admin.email)
                    )
                    found = result.first()
                    if found is None:
                        raise NotFoundError(
                            f"unknown user for franchise admin {admin.email} provided",
                            key="email",
                            value=admin.email,
                        )
                    admins.append(AdminOut(id=found.id, name=found.name, email=found.email))

                row = Franchise(name=franchise.name)
                session.add(row)
                await session.flush()
                for admin in admins:
                    session.add(UserRole(
                        user_id=admin.id,
                        role=RoleName.FRANCHISEE,
                        object_id=row.id,
                    ))

        logger.info(f"Franchise #{row.id} created ({row.name}, {len(admins)} admins)")
        return FranchiseOut(id=row.id, name=row.name, admins=admins, stores=[])

    async def delete_franchise(self, franchise_id: int) -> None:
        """Delete a franchise with its stores and admin roles, all or nothing."""
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    delete(Store).where(Store.franchise_id == franchise_id)
                )
                await session.execute(
                    delete(UserRole).where(
                        UserRole.object_id == franchise_id,
                        UserRole.role == RoleName.FRANCHISEE,
                    )
                )
                await session.execute(
                    delete(Franchise).where(Franchise.id == franchise_id)
                )
        logger.info(f"Franchise #{franchise_id} deleted")

    async def get_franchises(
        self,
        user: Optional[AuthUser] = None,
        page: int = 0,
        limit: int = 10,
        name_filter: Optional[str] = None,
    ) -> tuple[list[FranchiseOut], bool]:
        """
        List franchises whose name matches ``name_filter`` (``*`` is a wildcard).

        Pages are zero-based. One extra row is fetched to tell whether
        another page exists. Admins get admins and stores for each
        franchise; everybody else gets ids and names only.

        Returns:
            (franchises, more)
        """
        pattern = (name_filter or "*").replace("*", "%")

        async with self._session() as session:
            result = await session.execute(
                select(Franchise)
                .where(Franchise.name.like(pattern))
                .order_by(Franchise.id)
                .offset(page * limit)
                .limit(limit + 1)
            )
            rows = list(result.scalars().all())
            more = len(rows) > limit
            rows = rows[:limit]

            if user is not None and user.is_role(RoleName.ADMIN):
                franchises = [await self._populate_franchise(session, f) for f in rows]
            else:
                franchises = [FranchiseOut(id=f.id, name=f.name) for f in rows]

        return franchises, more

    async def get_user_franchises(self, user_id: int) -> list[FranchiseOut]:
        """Franchises the user administers, fully populated."""
        async with self._session() as session:
            result = await session.execute(
                select(UserRole.object_id).where(
                    UserRole.user_id == user_id,
                    UserRole.role == RoleName.FRANCHISEE,
                )
            )
            franchise_ids = [fid for fid in result.scalars().all() if fid is not None]
            if not franchise_ids:
                return []

            result = await session.execute(
                select(Franchise).where(Franchise.id.in_(franchise_ids)).order_by(Franchise.id)
            )
            return [
                await self._populate_franchise(session, f)
                for f in result.scalars().all()
            ]

    async def get_franchise(self, franchise_id: int) -> FranchiseOut:
        async with self._session() as session:
            row = await session.get(Franchise, franchise_id)
            if row is None:
                raise NotFoundError("unknown franchise", key="id", value=franchise_id)
            return await self._populate_franchise(session, row)

    # -------------------------------------------------------------------------
    # Stores
    # -------------------------------------------------------------------------

    async def create_store(self, franchise_id: int, store: StoreCreate) -> StoreOut:
        async with self._session() as session:
            async with session.begin():
                row = Store(franchise_id=franchise_id, name=store.name)
                session.add(row)
                await session.flush()
        logger.info(f"Store #{row.id} created in franchise #{franchise_id}")
        return StoreOut(id=row.id, name=row.name, franchise_id=franchise_id, total_revenue=0.0)

    async def delete_store(self, franchise_id: int, store_id: int) -> None:
        async with self._session() as session:
            async with session.begin():
                await session.execute(
                    delete(Store).where(
                        Store.franchise_id == franchise_id,
                        Store.id == store_id,
                    )
                )
        logger.info(f"Store #{store_id} deleted from franchise #{franchise_id}")
