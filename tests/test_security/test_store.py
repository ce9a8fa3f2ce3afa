"""Tests for PermissionStore record conversion and failure mapping."""

from datetime import datetime

import pytest
from sqlalchemy import text

from accessgate.models.security import CustomPrivilegeLevel, StandardPermission
from accessgate.security.errors import StoreUnavailable
from accessgate.security.scopes import Scope
from accessgate.security.store import PermissionStore, write_session


@pytest.fixture
def store(session_factory):
    return PermissionStore(session_factory)


async def test_standard_rows_with_unknown_scope_are_skipped(store, add):
    await add(
        StandardPermission(privilege_level=2, resource_type="profile", action="read", scope="own"),
        StandardPermission(privilege_level=2, resource_type="profile", action="update", scope="team"),
    )

    records = await store.standard_permissions(2)

    assert [(r.resource_type, r.action, r.scope) for r in records] == [("profile", "read", Scope.OWN)]


async def test_malformed_custom_level_is_treated_as_absent(store, add):
    await add(CustomPrivilegeLevel(level_number=6, name="Broken", permissions='[{"resource_type": "x"}]'))

    assert await store.custom_level(6) is None
    assert await store.active_custom_levels() == []


async def test_read_failures_raise_store_unavailable(store, session_factory):
    async with session_factory() as session, session.begin():
        await session.execute(text("DROP TABLE user_permissions"))

    with pytest.raises(StoreUnavailable):
        await store.active_grant(1, "employees", "read", datetime(2026, 1, 1))


async def test_write_failures_raise_store_unavailable(session_factory):
    with pytest.raises(StoreUnavailable):
        async with write_session(session_factory, "test") as session:
            await session.execute(text("INSERT INTO no_such_table VALUES (1)"))
