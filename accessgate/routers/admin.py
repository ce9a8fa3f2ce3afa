from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from accessgate.models.security import User
from accessgate.schemas.security import (
    CustomLevelCreate,
    CustomLevelOut,
    CustomLevelUpdate,
    EffectivePermissionOut,
    GrantIn,
    GrantOut,
    LevelOut,
    PrivilegeAssignmentIn,
    RevokeIn,
    StandardPermissionIn,
    StandardPermissionOut,
    TemplateApplyIn,
    TemplateOut,
    UserOut,
)
from accessgate.security.context import UserContext
from accessgate.security.dependencies import get_access_services, require_minimum_level
from accessgate.security.errors import LevelNotFound
from accessgate.security.services import AccessServices

router = APIRouter(prefix="/admin", tags=["admin"])

# HR managers may read privilege data; only system administrators change it.
# These are numeric minimums: any user holding a custom level (6+) passes both,
# so assigning a custom level grants full privilege administration.
ADMIN_READ_LEVEL = 4
ADMIN_WRITE_LEVEL = 5

can_read = require_minimum_level(ADMIN_READ_LEVEL)
can_write = require_minimum_level(ADMIN_WRITE_LEVEL)


@router.get("/users", response_model=list[UserOut], dependencies=[Depends(can_read)])
async def list_users(access: AccessServices = Depends(get_access_services)) -> list[User]:
    async with access.session_factory() as session:
        return list((await session.scalars(select(User).order_by(User.id))).all())


@router.put("/users/{user_id}/privileges", response_model=UserOut)
async def assign_user_privileges(
    user_id: int,
    body: PrivilegeAssignmentIn,
    ctx: UserContext = Depends(can_write),
    access: AccessServices = Depends(get_access_services),
) -> User:
    links = {field: getattr(body, field) for field in ("department_id", "manager_id") if field in body.model_fields_set}
    return await access.users.assign(user_id, body.privilege_level, assigned_by=ctx.id, **links)


# ---- Levels --------------------------------------------------------------------------


@router.get("/levels", response_model=list[LevelOut], dependencies=[Depends(can_read)])
async def list_levels(access: AccessServices = Depends(get_access_services)):
    return await access.standard_levels.all_levels()


@router.get("/standard-permissions", response_model=list[StandardPermissionOut], dependencies=[Depends(can_read)])
async def list_standard_permissions(level: int | None = None, access: AccessServices = Depends(get_access_services)):
    return await access.standard_levels.list_permissions(level)


@router.put(
    "/standard-permissions/{level}",
    response_model=StandardPermissionOut,
    dependencies=[Depends(can_write)],
)
async def set_standard_permission(
    level: int,
    body: StandardPermissionIn,
    access: AccessServices = Depends(get_access_services),
):
    return await access.standard_levels.set_permission(level, body.resource_type, body.action, body.scope)


@router.delete(
    "/standard-permissions/{level}/{resource_type}/{action}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_write)],
)
async def remove_standard_permission(
    level: int,
    resource_type: str,
    action: str,
    access: AccessServices = Depends(get_access_services),
) -> None:
    if not await access.standard_levels.remove_permission(level, resource_type, action):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Standard permission not found")


@router.get("/custom-levels", response_model=list[CustomLevelOut], dependencies=[Depends(can_read)])
async def list_custom_levels(access: AccessServices = Depends(get_access_services)):
    return await access.custom_levels.get_all()


@router.get("/custom-levels/{level_number}", response_model=CustomLevelOut, dependencies=[Depends(can_read)])
async def get_custom_level(level_number: int, access: AccessServices = Depends(get_access_services)):
    level = await access.custom_levels.get(level_number)
    if level is None:
        raise LevelNotFound(level_number)
    return level


@router.post("/custom-levels", response_model=CustomLevelOut, status_code=status.HTTP_201_CREATED)
async def create_custom_level(
    body: CustomLevelCreate,
    ctx: UserContext = Depends(can_write),
    access: AccessServices = Depends(get_access_services),
):
    return await access.custom_levels.create(
        body.level_number,
        body.name,
        body.description,
        body.permissions,
        created_by=ctx.id,
    )


@router.patch("/custom-levels/{level_number}", response_model=CustomLevelOut, dependencies=[Depends(can_write)])
async def update_custom_level(
    level_number: int,
    body: CustomLevelUpdate,
    access: AccessServices = Depends(get_access_services),
):
    changes = {}
    if body.name is not None:
        changes["name"] = body.name
    if "description" in body.model_fields_set:
        changes["description"] = body.description
    if body.permissions is not None:
        changes["permissions"] = body.permissions
    return await access.custom_levels.update(level_number, **changes)


@router.delete(
    "/custom-levels/{level_number}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(can_write)],
)
async def delete_custom_level(level_number: int, access: AccessServices = Depends(get_access_services)) -> None:
    await access.custom_levels.delete(level_number)


# ---- Granular permissions ------------------------------------------------------------


@router.get("/users/{user_id}/permissions", response_model=list[GrantOut], dependencies=[Depends(can_read)])
async def list_user_grants(user_id: int, access: AccessServices = Depends(get_access_services)):
    return await access.grants.list_for_user(user_id)


@router.get(
    "/users/{user_id}/effective-permissions",
    response_model=list[EffectivePermissionOut],
    dependencies=[Depends(can_read)],
)
async def user_effective_permissions(user_id: int, access: AccessServices = Depends(get_access_services)):
    return await access.grants.effective_permissions(user_id)


@router.post("/users/{user_id}/permissions", response_model=GrantOut, status_code=status.HTTP_201_CREATED)
async def grant_permission(
    user_id: int,
    body: GrantIn,
    ctx: UserContext = Depends(can_write),
    access: AccessServices = Depends(get_access_services),
):
    return await access.grants.grant(
        user_id,
        body.resource_type,
        body.action,
        body.scope,
        granted_by=ctx.id,
        expires_at=body.expires_at,
    )


@router.post("/users/{user_id}/permissions/revoke")
async def revoke_permission(
    user_id: int,
    body: RevokeIn,
    ctx: UserContext = Depends(can_write),
    access: AccessServices = Depends(get_access_services),
) -> dict[str, bool]:
    revoked = await access.grants.revoke(user_id, body.resource_type, body.action, revoked_by=ctx.id)
    return {"revoked": revoked}


@router.get("/templates", response_model=list[TemplateOut], dependencies=[Depends(can_read)])
async def list_templates(access: AccessServices = Depends(get_access_services)):
    return access.config.templates


@router.post("/users/{user_id}/templates", response_model=list[GrantOut], status_code=status.HTTP_201_CREATED)
async def apply_template(
    user_id: int,
    body: TemplateApplyIn,
    ctx: UserContext = Depends(can_write),
    access: AccessServices = Depends(get_access_services),
):
    return await access.grants.apply_template(user_id, body.template_name, granted_by=ctx.id, expires_at=body.expires_at)


@router.post("/cache/invalidate", dependencies=[Depends(can_write)])
async def invalidate_cache(access: AccessServices = Depends(get_access_services)) -> dict[str, str]:
    access.cache.invalidate()
    return {"status": "invalidated"}
