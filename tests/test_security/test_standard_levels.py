"""Tests for StandardLevelCatalog."""

import pytest

from accessgate.security.errors import InvalidLevelDefinition
from accessgate.security.scopes import Scope


@pytest.fixture
def catalog(access):
    return access.standard_levels


def test_standard_level_descriptions_come_from_config(catalog):
    levels = catalog.standard_levels
    assert [(lvl.level, lvl.name) for lvl in levels][:3] == [
        (1, "View Only"),
        (2, "Basic User"),
        (3, "Department Manager"),
    ]
    assert all(lvl.kind == "standard" for lvl in levels)


async def test_all_levels_merges_active_custom_levels(catalog, make_custom_level):
    await make_custom_level(6, [], name="Senior HR Specialist")
    await make_custom_level(7, [], name="Retired", is_active=False)

    levels = await catalog.all_levels()

    assert [lvl.level for lvl in levels] == [1, 2, 3, 4, 5, 6]
    assert levels[-1].name == "Senior HR Specialist"
    assert levels[-1].kind == "custom"


async def test_list_permissions_by_level(catalog, standard_table):
    level_three = await catalog.list_permissions(3)
    assert {(r.resource_type, r.action) for r in level_three} == {
        ("employees", "read"),
        ("employees", "update"),
        ("leave_requests", "read"),
        ("documents", "read"),
    }
    assert len(await catalog.list_permissions()) == len(standard_table)


async def test_set_permission_is_visible_to_the_next_decision(access, catalog, standard_table):
    engine = access.engine
    # Warm the cache first so the change has to come from invalidation.
    assert await engine.resolve_scope(1, 3, "employees", "read") is Scope.DEPARTMENT

    await catalog.set_permission(3, "employees", "read", "all")
    await catalog.set_permission(3, "documents", "create", Scope.DEPARTMENT)

    assert await engine.resolve_scope(1, 3, "employees", "read") is Scope.ALL
    assert await engine.resolve_scope(1, 3, "documents", "create") is Scope.DEPARTMENT
    rows = [r for r in await catalog.list_permissions(3) if (r.resource_type, r.action) == ("employees", "read")]
    assert len(rows) == 1


async def test_remove_permission(access, catalog, standard_table):
    assert await access.engine.has_permission(1, 5, "system", "admin")

    assert await catalog.remove_permission(5, "system", "admin") is True
    assert await catalog.remove_permission(5, "system", "admin") is False

    assert not await access.engine.has_permission(1, 5, "system", "admin")


async def test_edits_limited_to_standard_levels(catalog):
    with pytest.raises(InvalidLevelDefinition):
        await catalog.set_permission(6, "employees", "read", "all")
    with pytest.raises(InvalidLevelDefinition):
        await catalog.set_permission(0, "employees", "read", "all")
    with pytest.raises(InvalidLevelDefinition):
        await catalog.set_permission(2, "employees", "read", "team")
    with pytest.raises(InvalidLevelDefinition):
        await catalog.remove_permission(6, "employees", "read")
