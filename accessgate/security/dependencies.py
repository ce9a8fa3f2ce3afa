from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request

from accessgate.security.auth import extract_user_id
from accessgate.security.context import UserContext
from accessgate.security.services import AccessServices


def get_access_services(request: Request) -> AccessServices:
    services = getattr(request.app.state, "access", None)
    if services is None:
        raise RuntimeError("Access services not built. Did app startup run?")
    return services


def require_minimum_level(minimum: int) -> Callable[[Request], Awaitable[UserContext]]:
    """
    Route dependency: caller's privilege level must be >= `minimum`.

        @router.get("/admin/users", dependencies=[Depends(require_minimum_level(4))])
    """

    async def dependency(request: Request) -> UserContext:
        gate = get_access_services(request).gate
        ctx = await gate.require_minimum_level(extract_user_id(request), minimum)
        request.state.user_context = ctx
        return ctx

    return dependency


def require_permission(resource_type: str, action: str) -> Callable[[Request], Awaitable[UserContext]]:
    async def dependency(request: Request) -> UserContext:
        gate = get_access_services(request).gate
        ctx = await gate.require_permission(extract_user_id(request), resource_type, action)
        request.state.user_context = ctx
        return ctx

    return dependency


def require_record_access(resource_type: str, action: str = "read") -> Callable[..., Awaitable[UserContext]]:
    """
    Route dependency for by-id routes; reads the `record_id` path parameter.

        @router.get("/documents/{record_id}")
        async def get_document(record_id: int, ctx=Depends(require_record_access("documents", "read"))): ...
    """

    async def dependency(request: Request, record_id: int) -> UserContext:
        gate = get_access_services(request).gate
        ctx = await gate.require_record_access(extract_user_id(request), resource_type, action, record_id)
        request.state.user_context = ctx
        return ctx

    return dependency
