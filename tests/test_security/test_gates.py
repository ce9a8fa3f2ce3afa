"""Tests for the Gate guard checks."""

import pytest

from accessgate.models.hr import Employee
from accessgate.security.context import UserContextResolver
from accessgate.security.errors import InsufficientPrivilege, PermissionDenied, StoreUnavailable, UserContextNotFound
from accessgate.security.gates import Gate


@pytest.fixture
def gate(access):
    return access.gate


async def test_minimum_level(gate, make_user):
    manager = await make_user(privilege_level=3)

    ctx = await gate.require_minimum_level(manager.id, 3)
    assert ctx.id == manager.id

    with pytest.raises(InsufficientPrivilege) as excinfo:
        await gate.require_minimum_level(manager.id, 4)
    assert (excinfo.value.required, excinfo.value.actual) == (4, 3)


async def test_custom_levels_pass_standard_level_gates(gate, make_user):
    custom = await make_user(privilege_level=8)
    assert (await gate.require_minimum_level(custom.id, 5)).privilege_level == 8


async def test_unknown_or_missing_user(gate, make_user):
    inactive = await make_user(privilege_level=5, is_active=False)
    with pytest.raises(UserContextNotFound):
        await gate.require_minimum_level(None, 1)
    with pytest.raises(UserContextNotFound):
        await gate.require_permission(424242, "employees", "read")
    with pytest.raises(UserContextNotFound):
        await gate.require_minimum_level(inactive.id, 1)


async def test_require_permission(gate, standard_table, make_user):
    viewer = await make_user(privilege_level=1)

    assert (await gate.require_permission(viewer.id, "profile", "read")).id == viewer.id
    with pytest.raises(PermissionDenied) as excinfo:
        await gate.require_permission(viewer.id, "system", "admin")
    assert excinfo.value.resource_type == "system"
    assert excinfo.value.record_id is None


async def test_require_record_access(gate, add, departments, standard_table, make_user):
    manager = await make_user(privilege_level=3, department_id=7)
    inside, outside = await add(
        Employee(employee_id="E-1", first_name="In", last_name="Side", email="in@x.com", department_id=7),
        Employee(employee_id="E-2", first_name="Out", last_name="Side", email="out@x.com", department_id=8),
    )

    assert (await gate.require_record_access(manager.id, "employees", "read", inside.id)).department_id == 7
    with pytest.raises(PermissionDenied) as excinfo:
        await gate.require_record_access(manager.id, "employees", "read", outside.id)
    assert excinfo.value.record_id == outside.id


async def test_store_failure_becomes_permission_denied(access, make_user):
    user = await make_user(privilege_level=5)

    class BrokenResolver(UserContextResolver):
        async def get_user_context(self, user_id):
            raise StoreUnavailable("db down")

    gate = Gate(BrokenResolver(access.session_factory), access.engine, access.evaluator)

    with pytest.raises(PermissionDenied):
        await gate.require_permission(user.id, "employees", "read")
    with pytest.raises(PermissionDenied):
        await gate.require_minimum_level(user.id, 1)
