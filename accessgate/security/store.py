"""
Read-only access to the durable permission facts.

Three relations are read here: the standard permission table, the custom
privilege levels and the per-user granular overrides. There is no policy in
this module; every method returns typed, immutable records and turns driver
errors into StoreUnavailable so callers can fail closed. write_session() is
the transactional counterpart used by the administrative registries.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
import logging

from pydantic import ValidationError
from sqlalchemy import exists, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.models.security import CustomPrivilegeLevel, GrantedPermission, StandardPermission
from accessgate.security.errors import StoreUnavailable
from accessgate.security.scopes import PermissionEntry, Scope, decode_permissions

logger = logging.getLogger(__name__)


# ---- Records -------------------------------------------------------------------------


@dataclass(frozen=True)
class StandardRecord:
    privilege_level: int
    resource_type: str
    action: str
    scope: Scope


@dataclass(frozen=True)
class GrantRecord:
    user_id: int
    resource_type: str
    action: str
    scope: Scope
    granted_by: int | None
    granted_at: datetime
    expires_at: datetime | None


@dataclass(frozen=True)
class CustomLevel:
    level_number: int
    name: str
    description: str | None
    permissions: tuple[PermissionEntry, ...]
    is_active: bool
    created_by: int | None
    created_at: datetime
    updated_at: datetime

    def find(self, resource_type: str, action: str) -> PermissionEntry | None:
        for entry in self.permissions:
            if entry.matches(resource_type, action):
                return entry
        return None


def _parse_scope(raw: str, where: str) -> Scope | None:
    try:
        return Scope(raw)
    except ValueError:
        logger.warning("Ignoring row with unknown scope %r (%s)", raw, where)
        return None


def to_grant_record(row: GrantedPermission) -> GrantRecord | None:
    scope = _parse_scope(row.scope, f"user_permissions user_id={row.user_id}")
    if scope is None:
        return None
    return GrantRecord(
        user_id=row.user_id,
        resource_type=row.resource_type,
        action=row.action,
        scope=scope,
        granted_by=row.granted_by,
        granted_at=row.granted_at,
        expires_at=row.expires_at,
    )


def to_custom_level(row: CustomPrivilegeLevel) -> CustomLevel | None:
    try:
        permissions = decode_permissions(row.permissions)
    except ValidationError:
        # Rejected on write, so this only happens with rows edited outside the registry.
        logger.error("Custom level %s has a malformed permission list; treating it as absent", row.level_number)
        return None
    return CustomLevel(
        level_number=row.level_number,
        name=row.name,
        description=row.description,
        permissions=tuple(permissions),
        is_active=row.is_active,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


@asynccontextmanager
async def write_session(session_factory: async_sessionmaker[AsyncSession], what: str) -> AsyncIterator[AsyncSession]:
    """
    Transactional session for administrative writes.

    Commits on success, rolls back on any exception. Driver failures become
    StoreUnavailable; IntegrityError is re-raised untouched so callers can map
    unique-key races to their own conflict errors.
    """

    try:
        async with session_factory() as session, session.begin():
            yield session
    except IntegrityError:
        raise
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Permission store write failed what=%s error=%s", what, exc)
        raise StoreUnavailable(f"Failed to write {what}") from exc


# ---- Store ---------------------------------------------------------------------------


class PermissionStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _reading(self, what: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Permission store read failed what=%s error=%s", what, exc)
            raise StoreUnavailable(f"Failed to read {what}") from exc

    async def standard_permissions(self, privilege_level: int | None = None) -> list[StandardRecord]:
        stmt = select(
            StandardPermission.privilege_level,
            StandardPermission.resource_type,
            StandardPermission.action,
            StandardPermission.scope,
        ).order_by(StandardPermission.privilege_level, StandardPermission.resource_type, StandardPermission.action)
        if privilege_level is not None:
            stmt = stmt.where(StandardPermission.privilege_level == privilege_level)

        async with self._reading("standard permissions") as session:
            rows = (await session.execute(stmt)).all()

        records: list[StandardRecord] = []
        for level, resource_type, action, raw_scope in rows:
            scope = _parse_scope(raw_scope, f"standard_permissions level={level}")
            if scope is not None:
                records.append(StandardRecord(level, resource_type, action, scope))
        return records

    async def active_grant(self, user_id: int, resource_type: str, action: str, now: datetime) -> GrantRecord | None:
        stmt = (
            select(GrantedPermission)
            .where(
                GrantedPermission.user_id == user_id,
                GrantedPermission.resource_type == resource_type,
                GrantedPermission.action == action,
                GrantedPermission.is_active.is_(True),
                or_(GrantedPermission.expires_at.is_(None), GrantedPermission.expires_at > now),
            )
            .limit(1)
        )
        async with self._reading("granular permission") as session:
            row = (await session.scalars(stmt)).first()
        return to_grant_record(row) if row is not None else None

    async def active_grants_for_user(self, user_id: int, now: datetime) -> list[GrantRecord]:
        stmt = (
            select(GrantedPermission)
            .where(
                GrantedPermission.user_id == user_id,
                GrantedPermission.is_active.is_(True),
                or_(GrantedPermission.expires_at.is_(None), GrantedPermission.expires_at > now),
            )
            .order_by(GrantedPermission.resource_type, GrantedPermission.action)
        )
        async with self._reading("granular permissions") as session:
            rows = (await session.scalars(stmt)).all()
        return [rec for rec in (to_grant_record(r) for r in rows) if rec is not None]

    async def has_active_grants(self, user_id: int, now: datetime) -> bool:
        stmt = select(
            exists().where(
                GrantedPermission.user_id == user_id,
                GrantedPermission.is_active.is_(True),
                or_(GrantedPermission.expires_at.is_(None), GrantedPermission.expires_at > now),
            )
        )
        async with self._reading("granular permissions") as session:
            return bool((await session.execute(stmt)).scalar())

    async def custom_level(self, level_number: int) -> CustomLevel | None:
        stmt = select(CustomPrivilegeLevel).where(
            CustomPrivilegeLevel.level_number == level_number,
            CustomPrivilegeLevel.is_active.is_(True),
        )
        async with self._reading("custom privilege level") as session:
            row = (await session.scalars(stmt)).first()
        return to_custom_level(row) if row is not None else None

    async def active_custom_levels(self) -> list[CustomLevel]:
        stmt = (
            select(CustomPrivilegeLevel)
            .where(CustomPrivilegeLevel.is_active.is_(True))
            .order_by(CustomPrivilegeLevel.level_number)
        )
        async with self._reading("custom privilege levels") as session:
            rows = (await session.scalars(stmt)).all()
        return [lvl for lvl in (to_custom_level(r) for r in rows) if lvl is not None]
