from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.orm import InstrumentedAttribute


@dataclass(frozen=True)
class ColumnPath:
    """
    A column that is compared against a caller attribute (user id or department id).

    When the resource table does not carry the column itself, `through` names
    the (local foreign key, remote key) pair of the owning entity:

        ColumnPath(Employee.department_id, through=(LeaveRequest.employee_id, Employee.id))

    compiles to

        leave_requests.employee_id IN (SELECT employees.id FROM employees WHERE employees.department_id = :p)

    Values are always bound parameters; nothing is interpolated into SQL.
    """

    column: InstrumentedAttribute[Any]
    through: tuple[InstrumentedAttribute[Any], InstrumentedAttribute[Any]] | None = None

    def equals(self, value: int) -> ColumnElement[bool]:
        if self.through is None:
            return self.column == value
        local_key, remote_key = self.through
        return local_key.in_(select(remote_key).where(self.column == value))
