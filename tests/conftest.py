"""
Pytest fixtures for the test suite.

Every test gets a fresh in-memory SQLite database (aiosqlite on a StaticPool,
so all sessions share the one connection); tests do not affect each other.
"""
from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from accessgate.db.base import Base
from accessgate.models import hr as _hr  # noqa: F401  (register tables)
from accessgate.models import security as _security  # noqa: F401  (register tables)
from accessgate.models.security import CustomPrivilegeLevel, Department, StandardPermission, User
from accessgate.security.config import PrivilegesConfig, load_privileges_config
from accessgate.security.scopes import PermissionEntry, encode_permissions
from accessgate.security.services import AccessServices, build_services
from accessgate.settings import Settings

TEST_DB_URL = "sqlite+aiosqlite://"
PRIVILEGES_CONFIG = Path(__file__).resolve().parents[1] / "config" / "privileges.yaml"


class FakeClock:
    """Monotonic-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory engine with all ORM tables created."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def privileges_config() -> PrivilegesConfig:
    return load_privileges_config(PRIVILEGES_CONFIG)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def add(session_factory):
    """Persist ORM objects in one committed transaction and return them."""

    async def _add(*objects):
        async with session_factory() as session, session.begin():
            session.add_all(objects)
        return objects[0] if len(objects) == 1 else objects

    return _add


@pytest.fixture
def make_user(add):
    counter = {"n": 0}

    async def _make_user(privilege_level: int = 1, department_id: int | None = None, **kwargs) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=kwargs.pop("username", f"user{n}"),
            email=kwargs.pop("email", f"user{n}@example.com"),
            privilege_level=privilege_level,
            department_id=department_id,
            **kwargs,
        )
        return await add(user)

    return _make_user


@pytest_asyncio.fixture
async def departments(add):
    """Departments 7 (Engineering) and 8 (Sales)."""
    return await add(
        Department(id=7, name="Engineering"),
        Department(id=8, name="Sales"),
    )


@pytest_asyncio.fixture
async def standard_table(add):
    """A small standard permission table covering levels 1-5."""
    rows = [
        (1, "employees", "read", "own"),
        (1, "leave_requests", "read", "own"),
        (1, "profile", "read", "own"),
        (2, "employees", "read", "own"),
        (2, "documents", "read", "own"),
        (3, "employees", "read", "department"),
        (3, "employees", "update", "department"),
        (3, "leave_requests", "read", "department"),
        (3, "documents", "read", "department"),
        (4, "employees", "read", "all"),
        (4, "leave_requests", "read", "all"),
        (4, "documents", "read", "all"),
        (5, "employees", "read", "all"),
        (5, "employees", "delete", "all"),
        (5, "system", "admin", "all"),
    ]
    return await add(
        *(
            StandardPermission(privilege_level=level, resource_type=resource, action=action, scope=scope)
            for level, resource, action, scope in rows
        )
    )


@pytest.fixture
def make_custom_level(add):
    async def _make(level_number: int, permissions: list[tuple[str, str, str]], is_active: bool = True, name: str | None = None):
        entries = [PermissionEntry(resource_type=r, action=a, scope=s) for r, a, s in permissions]
        return await add(
            CustomPrivilegeLevel(
                level_number=level_number,
                name=name or f"Custom {level_number}",
                permissions=encode_permissions(entries),
                is_active=is_active,
            )
        )

    return _make



@pytest.fixture
def access(session_factory, privileges_config) -> AccessServices:
    """Fully wired services over the test database (threshold 6, default TTL)."""
    return build_services(session_factory, privileges_config, Settings())
