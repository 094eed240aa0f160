import os

# Must be in place before pizza_service.main reads its settings
os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./pizza-test.db")

from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext

from pizza_service.core import security
from pizza_service.core.config import get_settings
from pizza_service.dependencies import get_database, reset_database, set_auth_user
from pizza_service.main import app
from pizza_service.repository import DB
from pizza_service.roles import Admin, AuthUser, Diner, FranchiseAdmin
from pizza_service.services.factory import (
    BaseFactoryService,
    FactoryResult,
    get_factory_service,
    reset_factory_service,
)


@pytest.fixture(autouse=True)
def test_environment(tmp_path, monkeypatch):
    """Fresh settings, a throwaway SQLite file and cheap bcrypt per test."""
    monkeypatch.setenv("ENV_MODE", "development")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'pizza.db'}")
    monkeypatch.setattr(
        security,
        "pwd_context",
        CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=4),
    )
    get_settings.cache_clear()
    reset_database()
    reset_factory_service()
    yield
    app.dependency_overrides.clear()
    get_settings.cache_clear()
    reset_database()
    reset_factory_service()


@pytest.fixture
async def db():
    database = DB()
    await database.initialize()
    yield database
    await database.close()


# =============================================================================
# ROUTER FIXTURES (data layer replaced by a mock)
# =============================================================================

DINER = AuthUser(id=1, name="Test User", email="test@test.com", roles=(Diner(),))
ADMIN = AuthUser(id=2, name="Admin", email="a@jwt.com", roles=(Admin(),))
FRANCHISEE = AuthUser(
    id=4,
    name="franchisee",
    email="f@jwt.com",
    roles=(Diner(), FranchiseAdmin(franchise_id=1)),
)


@pytest.fixture
def fake_db():
    return AsyncMock(spec=DB)


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_database] = lambda: fake_db
    return TestClient(app)


@pytest.fixture
def login_as():
    """Make every request run as the given user (None for anonymous)."""

    def _login(user: Optional[AuthUser]) -> None:
        app.dependency_overrides[set_auth_user] = lambda: user

    return _login


class StubFactory(BaseFactoryService):
    """Records submitted orders and answers with a canned result."""

    def __init__(self, result: FactoryResult):
        self.result = result
        self.calls: list[dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        return "stub"

    async def submit_order(self, diner: dict[str, Any], order: dict[str, Any]) -> FactoryResult:
        self.calls.append({"diner": diner, "order": order})
        return self.result

    async def health_check(self) -> bool:
        return True


@pytest.fixture
def factory():
    stub = StubFactory(FactoryResult(success=True, report_url="http://report", jwt="new-jwt"))
    app.dependency_overrides[get_factory_service] = lambda: stub
    return stub
