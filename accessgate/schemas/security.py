from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from accessgate.security.scopes import PermissionEntry, Scope


class UserContextOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    privilege_level: int
    department_id: int | None
    manager_id: int | None
    department_name: str | None
    dept_manager_id: int | None


class EffectivePermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    resource_type: str
    action: str
    scope: Scope
    source: str
    overridden: bool
    base_scope: Scope | None
    granted_by: int | None
    granted_at: datetime | None
    expires_at: datetime | None


class MeContextOut(BaseModel):
    context: UserContextOut
    permissions: list[EffectivePermissionOut]


# ---- Levels --------------------------------------------------------------------------


class LevelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: int
    name: str
    description: str | None
    kind: str


class StandardPermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    privilege_level: int
    resource_type: str
    action: str
    scope: Scope


class StandardPermissionIn(BaseModel):
    resource_type: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    scope: Scope


class CustomLevelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level_number: int
    name: str
    description: str | None
    permissions: list[PermissionEntry]
    is_active: bool
    created_by: int | None
    created_at: datetime
    updated_at: datetime


class CustomLevelCreate(BaseModel):
    level_number: int
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    permissions: list[PermissionEntry] = Field(default_factory=list)


class CustomLevelUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    permissions: list[PermissionEntry] | None = None


# ---- Grants --------------------------------------------------------------------------


class GrantIn(BaseModel):
    resource_type: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)
    scope: Scope
    expires_at: datetime | None = None


class RevokeIn(BaseModel):
    resource_type: str = Field(min_length=1, max_length=50)
    action: str = Field(min_length=1, max_length=50)


class GrantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    resource_type: str
    action: str
    scope: Scope
    granted_by: int | None
    granted_at: datetime
    expires_at: datetime | None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str | None
    permissions: list[PermissionEntry]
    expires_in_days: int | None


class TemplateApplyIn(BaseModel):
    template_name: str = Field(min_length=1)
    expires_at: datetime | None = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    name: str | None
    privilege_level: int
    department_id: int | None
    manager_id: int | None
    is_active: bool


class PrivilegeAssignmentIn(BaseModel):
    privilege_level: int = Field(ge=1)
    department_id: int | None = None
    manager_id: int | None = None
