from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.db.base import utcnow
from accessgate.models.security import CustomPrivilegeLevel, User
from accessgate.security.errors import InvalidLevelDefinition, LevelInUse, LevelNotFound, LevelNumberConflict
from accessgate.security.scopes import PermissionEntry, PermissionList, encode_permissions
from accessgate.security.store import CustomLevel, PermissionStore, to_custom_level, write_session

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def validate_permissions(permissions: Iterable[PermissionEntry | Mapping[str, Any]]) -> list[PermissionEntry]:
    """Validate raw permission dicts (or entries) into typed records; reject on first bad entry."""
    try:
        return PermissionList.validate_python(
            [p.model_dump() if isinstance(p, PermissionEntry) else p for p in permissions]
        )
    except ValidationError as exc:
        raise InvalidLevelDefinition(
            f"Each permission must have resource_type, action, and scope (own, department, all): {exc}"
        ) from exc


class CustomLevelRegistry:
    """
    Administrative CRUD over custom privilege levels.

    Level numbers are unique across active and soft-deleted rows, so a retired
    number is never reissued with different permissions.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: PermissionStore,
        custom_level_threshold: int = 6,
    ) -> None:
        self._session_factory = session_factory
        self._store = store
        self._threshold = custom_level_threshold

    async def create(
        self,
        level_number: int,
        name: str,
        description: str | None,
        permissions: Iterable[PermissionEntry | Mapping[str, Any]],
        created_by: int | None,
    ) -> CustomLevel:
        if level_number < self._threshold:
            raise InvalidLevelDefinition(f"Level number must be {self._threshold} or higher")
        if not name or not name.strip():
            raise InvalidLevelDefinition("Name is required")
        entries = validate_permissions(permissions)

        try:
            async with write_session(self._session_factory, "custom privilege level") as session:
                existing = await session.scalar(
                    select(CustomPrivilegeLevel.id).where(CustomPrivilegeLevel.level_number == level_number)
                )
                if existing is not None:
                    raise LevelNumberConflict(level_number)

                row = CustomPrivilegeLevel(
                    level_number=level_number,
                    name=name.strip(),
                    description=description,
                    permissions=encode_permissions(entries),
                    is_active=True,
                    created_by=created_by,
                )
                session.add(row)
                await session.flush()
                created = to_custom_level(row)
        except IntegrityError as exc:
            # Lost a race with a concurrent create for the same number.
            raise LevelNumberConflict(level_number) from exc

        logger.info("Custom privilege level created level=%s name=%r by=%s", level_number, name, created_by)
        return created

    async def update(
        self,
        level_number: int,
        *,
        name: str | None = None,
        description: str | None = _UNSET,
        permissions: Iterable[PermissionEntry | Mapping[str, Any]] | None = None,
    ) -> CustomLevel:
        """
        Partial update of an active level.

        `permissions`, when given, replaces the whole list; entries are never merged.
        """

        if name is not None and not name.strip():
            raise InvalidLevelDefinition("Name cannot be empty")
        entries = validate_permissions(permissions) if permissions is not None else None

        async with write_session(self._session_factory, "custom privilege level") as session:
            row = await session.scalar(
                select(CustomPrivilegeLevel).where(
                    CustomPrivilegeLevel.level_number == level_number,
                    CustomPrivilegeLevel.is_active.is_(True),
                )
            )
            if row is None:
                raise LevelNotFound(level_number)

            if name is not None:
                row.name = name.strip()
            if description is not _UNSET:
                row.description = description
            if entries is not None:
                row.permissions = encode_permissions(entries)
            row.updated_at = utcnow()
            await session.flush()
            updated = to_custom_level(row)

        logger.info("Custom privilege level updated level=%s", level_number)
        return updated

    async def delete(self, level_number: int) -> None:
        """Soft delete. Refused while any active user still holds the level."""

        async with write_session(self._session_factory, "custom privilege level") as session:
            row = await session.scalar(
                select(CustomPrivilegeLevel).where(
                    CustomPrivilegeLevel.level_number == level_number,
                    CustomPrivilegeLevel.is_active.is_(True),
                )
            )
            if row is None:
                raise LevelNotFound(level_number)

            in_use = await session.scalar(
                select(func.count(User.id)).where(User.privilege_level == level_number, User.is_active.is_(True))
            )
            if in_use:
                raise LevelInUse(level_number, int(in_use))

            row.is_active = False
            row.updated_at = utcnow()

        logger.info("Custom privilege level deactivated level=%s", level_number)

    async def get(self, level_number: int) -> CustomLevel | None:
        return await self._store.custom_level(level_number)

    async def get_all(self) -> list[CustomLevel]:
        return await self._store.active_custom_levels()
