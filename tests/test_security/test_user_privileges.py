"""Tests for UserPrivilegeRegistry."""

import pytest

from accessgate.security.errors import InvalidAssignment, LevelInUse, UserNotFound
from accessgate.security.scopes import Scope

READ_ALL = {"resource_type": "employees", "action": "read", "scope": "all"}


@pytest.fixture
def users(access):
    return access.users


async def _scope(access, user_id, resource_type="employees", action="read"):
    ctx = await access.resolver.get_user_context(user_id)
    return await access.engine.resolve_scope(ctx.id, ctx.privilege_level, resource_type, action)


async def test_new_standard_level_applies_to_next_decision(access, users, standard_table, make_user):
    admin = await make_user(privilege_level=5)
    user = await make_user(privilege_level=1)
    assert await _scope(access, user.id) is Scope.OWN

    updated = await users.assign(user.id, 4, assigned_by=admin.id)

    assert updated.privilege_level == 4
    assert await _scope(access, user.id) is Scope.ALL


async def test_assigned_custom_level_is_used_and_blocks_delete(access, users, standard_table, make_user):
    admin = await make_user(privilege_level=5)
    user = await make_user(privilege_level=1)
    await access.custom_levels.create(11, "Recruiter", None, [READ_ALL], created_by=admin.id)

    await users.assign(user.id, 11, assigned_by=admin.id)

    assert await _scope(access, user.id) is Scope.ALL
    # Closed namespace: the old level-1 profile permission is gone.
    assert await _scope(access, user.id, "profile", "read") is None
    with pytest.raises(LevelInUse) as excinfo:
        await access.custom_levels.delete(11)
    assert excinfo.value.user_count == 1


async def test_assign_rejects_unknown_levels(access, users, make_user, make_custom_level):
    admin = await make_user(privilege_level=5)
    user = await make_user(privilege_level=2)
    await make_custom_level(7, [("employees", "read", "all")], is_active=False)

    for level in (0, 7, 99):
        with pytest.raises(InvalidAssignment):
            await users.assign(user.id, level, assigned_by=admin.id)

    assert (await access.resolver.get_user_context(user.id)).privilege_level == 2


async def test_assign_refuses_self_and_unknown_target(users, make_user):
    admin = await make_user(privilege_level=5)
    gone = await make_user(privilege_level=1, is_active=False)

    with pytest.raises(InvalidAssignment, match="own privileges"):
        await users.assign(admin.id, 1, assigned_by=admin.id)
    with pytest.raises(UserNotFound):
        await users.assign(424242, 1, assigned_by=admin.id)
    with pytest.raises(UserNotFound):
        await users.assign(gone.id, 1, assigned_by=admin.id)


async def test_department_and_manager_links(access, users, departments, make_user):
    admin = await make_user(privilege_level=5)
    boss = await make_user(privilege_level=3, department_id=7)
    user = await make_user(privilege_level=1, department_id=7, manager_id=boss.id)

    # Omitted links keep their values.
    updated = await users.assign(user.id, 2, assigned_by=admin.id)
    assert (updated.department_id, updated.manager_id) == (7, boss.id)

    updated = await users.assign(user.id, 2, assigned_by=admin.id, department_id=8, manager_id=None)
    assert (updated.department_id, updated.manager_id) == (8, None)
    ctx = await access.resolver.get_user_context(user.id)
    assert ctx.department_id == 8
    assert ctx.department_name == "Sales"

    with pytest.raises(InvalidAssignment, match="Department"):
        await users.assign(user.id, 2, assigned_by=admin.id, department_id=99)
    with pytest.raises(InvalidAssignment, match="Manager"):
        await users.assign(user.id, 2, assigned_by=admin.id, manager_id=424242)
    with pytest.raises(InvalidAssignment, match="own manager"):
        await users.assign(user.id, 2, assigned_by=admin.id, manager_id=user.id)
