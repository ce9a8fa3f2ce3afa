from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from accessgate.models.hr import LeaveRequest
from accessgate.schemas.hr import LeaveRequestOut
from accessgate.security.context import UserContext
from accessgate.security.dependencies import get_access_services, require_minimum_level, require_record_access
from accessgate.security.services import AccessServices

router = APIRouter(tags=["leave_requests"])


@router.get("/leave-requests", response_model=list[LeaveRequestOut])
async def list_leave_requests(
    ctx: UserContext = Depends(require_minimum_level(1)),
    access: AccessServices = Depends(get_access_services),
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.start_date.desc(), LeaveRequest.id)
    return await access.evaluator.filter(ctx.id, "leave_requests", stmt, ctx=ctx)


@router.get("/leave-requests/{record_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    record_id: int,
    ctx: UserContext = Depends(require_record_access("leave_requests", "read")),
    access: AccessServices = Depends(get_access_services),
) -> LeaveRequest:
    async with access.session_factory() as session:
        leave_request = await session.get(LeaveRequest, record_id)
    if leave_request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    return leave_request
