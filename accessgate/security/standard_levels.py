"""
Standard privilege levels: descriptions from configuration, permissions from
the standard_permissions table.

Every edit of the table invalidates the permission cache so the next decision
sees it, instead of waiting out the TTL.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.models.security import StandardPermission
from accessgate.security.cache import PermissionCache
from accessgate.security.config import PrivilegesConfig
from accessgate.security.errors import InvalidLevelDefinition
from accessgate.security.scopes import Scope
from accessgate.security.store import PermissionStore, StandardRecord, write_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelInfo:
    level: int
    name: str
    description: str | None
    kind: str  # "standard" | "custom"


class StandardLevelCatalog:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: PermissionStore,
        cache: PermissionCache,
        config: PrivilegesConfig,
    ) -> None:
        self._store = store
        self._cache = cache
        self._config = config
        self._session_factory = session_factory

    @property
    def standard_levels(self) -> list[LevelInfo]:
        return [
            LevelInfo(level=lvl.level, name=lvl.name, description=lvl.description or None, kind="standard")
            for lvl in self._config.standard_levels
        ]

    async def all_levels(self) -> list[LevelInfo]:
        custom = [
            LevelInfo(level=lvl.level_number, name=lvl.name, description=lvl.description, kind="custom")
            for lvl in await self._store.active_custom_levels()
        ]
        return sorted(self.standard_levels + custom, key=lambda info: info.level)

    async def list_permissions(self, level: int | None = None) -> list[StandardRecord]:
        return await self._store.standard_permissions(level)

    def _check_level(self, level: int) -> None:
        threshold = self._config.custom_level_threshold
        if not 1 <= level < threshold:
            raise InvalidLevelDefinition(f"Standard levels are 1 to {threshold - 1}, got {level}")

    async def set_permission(self, level: int, resource_type: str, action: str, scope: Scope | str) -> StandardRecord:
        self._check_level(level)
        if not resource_type or not action:
            raise InvalidLevelDefinition("resource_type and action are required")
        try:
            scope = Scope(scope)
        except ValueError as exc:
            raise InvalidLevelDefinition(f"Invalid scope {scope!r}. Must be: own, department, or all") from exc

        async with write_session(self._session_factory, "standard permission") as session:
            row = await session.scalar(
                select(StandardPermission).where(
                    StandardPermission.privilege_level == level,
                    StandardPermission.resource_type == resource_type,
                    StandardPermission.action == action,
                )
            )
            if row is None:
                session.add(
                    StandardPermission(
                        privilege_level=level,
                        resource_type=resource_type,
                        action=action,
                        scope=scope.value,
                    )
                )
            else:
                row.scope = scope.value

        self._cache.invalidate()
        logger.info("Standard permission set level=%s %s:%s scope=%s", level, resource_type, action, scope.value)
        return StandardRecord(level, resource_type, action, scope)

    async def remove_permission(self, level: int, resource_type: str, action: str) -> bool:
        self._check_level(level)
        async with write_session(self._session_factory, "standard permission") as session:
            result = await session.execute(
                delete(StandardPermission).where(
                    StandardPermission.privilege_level == level,
                    StandardPermission.resource_type == resource_type,
                    StandardPermission.action == action,
                )
            )
            removed = result.rowcount > 0

        if removed:
            self._cache.invalidate()
        logger.info("Standard permission removed level=%s %s:%s changed=%s", level, resource_type, action, removed)
        return removed
