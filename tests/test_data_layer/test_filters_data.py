"""
Tests for ColumnPath predicates against real rows (ORM).

Uses the in-memory engine from conftest; data is inserted via ORM.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import select

from accessgate.db.filters import ColumnPath
from accessgate.models.hr import Employee, LeaveRequest
from accessgate.models.security import Department


def test_direct_path_binds_its_value():
    predicate = ColumnPath(Employee.department_id).equals(7)
    compiled = predicate.compile()

    assert "employees.department_id = :department_id_1" in str(compiled)
    assert compiled.params == {"department_id_1": 7}


def test_through_path_compiles_to_subquery():
    path = ColumnPath(Employee.department_id, through=(LeaveRequest.employee_id, Employee.id))
    sql = str(path.equals(7).compile())

    assert "leave_requests.employee_id IN" in sql
    assert "SELECT employees.id" in sql


async def test_through_path_filters_rows(add, session_factory):
    await add(Department(id=7, name="Engineering"), Department(id=8, name="Sales"))
    eng, sales = await add(
        Employee(employee_id="E-1", first_name="A", last_name="B", email="a@b.com", department_id=7),
        Employee(employee_id="E-2", first_name="C", last_name="D", email="c@d.com", department_id=8),
    )
    await add(
        LeaveRequest(employee_id=eng.id, leave_type="vacation", start_date=date(2026, 1, 5), end_date=date(2026, 1, 6), days_requested=2),
        LeaveRequest(employee_id=sales.id, leave_type="sick", start_date=date(2026, 1, 7), end_date=date(2026, 1, 7), days_requested=1),
    )

    path = ColumnPath(Employee.department_id, through=(LeaveRequest.employee_id, Employee.id))
    async with session_factory() as session:
        rows = list((await session.scalars(select(LeaveRequest).where(path.equals(7)))).all())

    assert [row.employee_id for row in rows] == [eng.id]
    assert rows[0].status == "pending"
