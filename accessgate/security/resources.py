"""
Declared row-ownership mapping per resource type.

Scope filtering only ever uses the columns listed here. A resource that is
not registered, or a scope without a declared path, filters to nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, true
from sqlalchemy.orm import InstrumentedAttribute

from accessgate.db.filters import ColumnPath
from accessgate.models.hr import Document, Employee, LeaveRequest
from accessgate.models.security import User
from accessgate.security.context import UserContext
from accessgate.security.scopes import Scope


@dataclass(frozen=True)
class ResourcePolicy:
    resource_type: str
    model: type[Any]
    primary_key: InstrumentedAttribute[Any]
    owner: ColumnPath | None
    department: ColumnPath | None

    def criteria(self, scope: Scope | None, ctx: UserContext) -> ColumnElement[bool] | None:
        """
        Row predicate for the scope; None when no row can be visible.

        "all" is `true()`. No scope, an undeclared path, or "department" for a
        caller without a department all give None.
        """

        if scope == Scope.ALL:
            return true()
        if scope == Scope.OWN and self.owner is not None:
            return self.owner.equals(ctx.id)
        if scope == Scope.DEPARTMENT and self.department is not None and ctx.department_id is not None:
            return self.department.equals(ctx.department_id)
        return None


_employee_via_leave = (LeaveRequest.employee_id, Employee.id)

RESOURCE_POLICIES: dict[str, ResourcePolicy] = {
    policy.resource_type: policy
    for policy in (
        ResourcePolicy(
            resource_type="employees",
            model=Employee,
            primary_key=Employee.id,
            # "own" is the employee record linked to the caller's login account.
            owner=ColumnPath(Employee.user_id),
            department=ColumnPath(Employee.department_id),
        ),
        ResourcePolicy(
            resource_type="leave_requests",
            model=LeaveRequest,
            primary_key=LeaveRequest.id,
            owner=ColumnPath(Employee.user_id, through=_employee_via_leave),
            department=ColumnPath(Employee.department_id, through=_employee_via_leave),
        ),
        ResourcePolicy(
            resource_type="documents",
            model=Document,
            primary_key=Document.id,
            owner=ColumnPath(Document.uploaded_by),
            department=ColumnPath(Document.department_id),
        ),
        ResourcePolicy(
            resource_type="profile",
            model=User,
            primary_key=User.id,
            owner=ColumnPath(User.id),
            department=ColumnPath(User.department_id),
        ),
    )
}


def get_policy(resource_type: str) -> ResourcePolicy | None:
    return RESOURCE_POLICIES.get(resource_type)
