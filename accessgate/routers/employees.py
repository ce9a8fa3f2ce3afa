from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from accessgate.models.hr import Employee
from accessgate.schemas.hr import EmployeeOut
from accessgate.schemas.security import EffectivePermissionOut, MeContextOut, UserContextOut
from accessgate.security.context import UserContext
from accessgate.security.dependencies import get_access_services, require_minimum_level, require_record_access
from accessgate.security.services import AccessServices

router = APIRouter(tags=["employees"])


@router.get("/me/context", response_model=MeContextOut)
async def me_context(
    ctx: UserContext = Depends(require_minimum_level(1)),
    access: AccessServices = Depends(get_access_services),
) -> MeContextOut:
    permissions = await access.grants.effective_permissions(ctx.id)
    return MeContextOut(
        context=UserContextOut.model_validate(ctx),
        permissions=[EffectivePermissionOut.model_validate(p) for p in permissions],
    )


@router.get("/employees", response_model=list[EmployeeOut])
async def list_employees(
    ctx: UserContext = Depends(require_minimum_level(1)),
    access: AccessServices = Depends(get_access_services),
) -> list[Employee]:
    # Rows outside the caller's read scope are filtered out, not rejected.
    return await access.evaluator.filter(ctx.id, "employees", select(Employee).order_by(Employee.id), ctx=ctx)


@router.get("/employees/{record_id}", response_model=EmployeeOut)
async def get_employee(
    record_id: int,
    ctx: UserContext = Depends(require_record_access("employees", "read")),
    access: AccessServices = Depends(get_access_services),
) -> Employee:
    async with access.session_factory() as session:
        employee = await session.get(Employee, record_id)
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return employee
