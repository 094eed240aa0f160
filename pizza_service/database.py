"""
Database Connection Module
Builds the SQLAlchemy async engine (connection pool) and makes sure the
target database exists before the schema is created.
"""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from pizza_service.core.config import Settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, settings: Settings) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    PostgreSQL gets a sized QueuePool with pre-ping; SQLite keeps the
    dialect's default pool and only receives a busy timeout.
    """
    url = make_url(database_url)
    options: dict[str, Any] = {"echo": settings.db_echo}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"timeout": settings.db_connect_timeout}
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            connect_args={"connect_timeout": settings.db_connect_timeout},
        )

    return create_async_engine(database_url, **options)


async def ensure_database_exists(database_url: str, settings: Settings) -> bool:
    """
    Create the target database if it is missing.

    Only PostgreSQL needs work here: the check runs against the ``postgres``
    maintenance database in AUTOCOMMIT mode since CREATE DATABASE cannot
    run inside a transaction. SQLite creates its file on first connect.

    Returns:
        True if the database was created by this call
    """
    url = make_url(database_url)
    if url.get_backend_name() != "postgresql" or not url.database:
        return False

    admin_engine = create_async_engine(
        url.set(database="postgres"),
        isolation_level="AUTOCOMMIT",
        connect_args={"connect_timeout": settings.db_connect_timeout},
    )
    try:
        async with admin_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": url.database},
            )
            if result.scalar() is not None:
                return False
            # Identifiers cannot be bound parameters
            quoted = url.database.replace('"', '""')
            await conn.execute(text(f'CREATE DATABASE "{quoted}"'))
            logger.info(f"Created database {url.database}")
            return True
    finally:
        await admin_engine.dispose()
