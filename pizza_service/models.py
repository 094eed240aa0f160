"""
SQLAlchemy Database Models

Users and their roles, login sessions, the menu, franchises with their
stores, and diner orders with their items.
"""

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.sql import func

from pizza_service.database import Base
from pizza_service.roles import RoleName


class User(Base):
    """A diner, franchisee or admin. ``password`` holds the bcrypt hash."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<User #{self.id} - {self.email}>"


class UserRole(Base):
    """
    One role held by a user.

    ``object_id`` is the franchise id for franchisee roles and NULL otherwise.
    A franchise's admins are exactly the users holding a franchisee row
    pointing at it.
    """
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(Enum(RoleName), nullable=False)
    object_id = Column(Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<UserRole user={self.user_id} {self.role.value} object={self.object_id}>"


class AuthToken(Base):
    """A live login session, keyed by the token's signature segment."""
    __tablename__ = "auth_tokens"

    token = Column(String(512), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class MenuItem(Base):
    __tablename__ = "menu"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(String(255), nullable=False)
    image = Column(String(1024), nullable=False)
    price = Column(Float, nullable=False)

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.title}>"


class Franchise(Base):
    __tablename__ = "franchises"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Franchise #{self.id} - {self.name}>"


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    franchise_id = Column(Integer, ForeignKey("franchises.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Store #{self.id} - {self.name} (franchise {self.franchise_id})>"


class DinerOrder(Base):
    """An order placed by a diner at one store of one franchise."""
    __tablename__ = "diner_orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    diner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    franchise_id = Column(Integer, nullable=False)
    store_id = Column(Integer, nullable=False, index=True)
    date = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<DinerOrder #{self.id} - diner {self.diner_id} - store {self.store_id}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("diner_orders.id"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menu.id"), nullable=False)
    description = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
