"""
Per-user granular permission overrides.

There is one row per (user_id, resource_type, action). grant() upserts that
row (so repeated grants never pile up duplicates) and revoke() only flips
is_active, keeping the row as history. Expired rows stay in the table and
are ignored by every read.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.db.base import utcnow
from accessgate.models.security import GrantedPermission, User
from accessgate.security.cache import PermissionCache
from accessgate.security.config import PrivilegesConfig
from accessgate.security.context import UserContextResolver
from accessgate.security.engine import AccessDecisionEngine
from accessgate.security.errors import InvalidGrant, UnknownTemplate, UserNotFound
from accessgate.security.scopes import Scope
from accessgate.security.store import GrantRecord, PermissionStore, to_grant_record, write_session

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}
_UPSERT_COLUMNS = ("scope", "granted_by", "granted_at", "expires_at", "is_active", "revoked_by", "updated_at")


@dataclass(frozen=True)
class EffectivePermission:
    """One line of a user's merged permission set, for audit and display."""

    resource_type: str
    action: str
    scope: Scope
    source: str  # "standard" | "custom" | "granular"
    overridden: bool = False
    base_scope: Scope | None = None
    granted_by: int | None = None
    granted_at: datetime | None = None
    expires_at: datetime | None = None


def _as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class GrantRegistry:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        store: PermissionStore,
        resolver: UserContextResolver,
        engine: AccessDecisionEngine,
        cache: PermissionCache,
        config: PrivilegesConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._store = store
        self._resolver = resolver
        self._engine = engine
        self._cache = cache
        self._config = config
        self._clock = clock

    # ---- Mutations ------------------------------------------------------------------

    async def grant(
        self,
        user_id: int,
        resource_type: str,
        action: str,
        scope: Scope | str,
        granted_by: int | None,
        expires_at: datetime | None = None,
    ) -> GrantRecord:
        try:
            scope = Scope(scope)
        except ValueError as exc:
            raise InvalidGrant(f"Invalid scope {scope!r}. Must be: own, department, or all") from exc
        if not resource_type or not action:
            raise InvalidGrant("resource_type and action are required")

        now = self._clock()
        expires_at = _as_naive_utc(expires_at)
        if expires_at is not None and expires_at <= now:
            raise InvalidGrant("expires_at must be in the future")

        values = {
            "user_id": user_id,
            "resource_type": resource_type,
            "action": action,
            "scope": scope.value,
            "granted_by": granted_by,
            "granted_at": now,
            "expires_at": expires_at,
            "is_active": True,
            "revoked_by": None,
            "updated_at": now,
        }

        async with write_session(self._session_factory, "granular permission") as session:
            user_exists = await session.scalar(select(User.id).where(User.id == user_id, User.is_active.is_(True)))
            if user_exists is None:
                raise UserNotFound(user_id)

            await self._upsert(session, values)
            row = await session.scalar(
                select(GrantedPermission).where(
                    GrantedPermission.user_id == user_id,
                    GrantedPermission.resource_type == resource_type,
                    GrantedPermission.action == action,
                )
                .execution_options(populate_existing=True)
            )
            record = to_grant_record(row)

        logger.info(
            "Granted %s:%s scope=%s to user_id=%s by=%s expires_at=%s",
            resource_type,
            action,
            scope.value,
            user_id,
            granted_by,
            expires_at,
        )
        return record

    async def _upsert(self, session: AsyncSession, values: dict) -> None:
        insert = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(GrantedPermission).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["user_id", "resource_type", "action"],
                set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS},
            )
            await session.execute(stmt)
            return

        # Dialects without ON CONFLICT: update in place, insert when missing.
        row = await session.scalar(
            select(GrantedPermission)
            .where(
                GrantedPermission.user_id == values["user_id"],
                GrantedPermission.resource_type == values["resource_type"],
                GrantedPermission.action == values["action"],
            )
            .with_for_update()
        )
        if row is None:
            session.add(GrantedPermission(**values))
        else:
            for col in _UPSERT_COLUMNS:
                setattr(row, col, values[col])
        await session.flush()

    async def revoke(self, user_id: int, resource_type: str, action: str, revoked_by: int | None) -> bool:
        """Deactivate the override; returns False when there was no active one."""

        async with write_session(self._session_factory, "granular permission") as session:
            result = await session.execute(
                update(GrantedPermission)
                .where(
                    GrantedPermission.user_id == user_id,
                    GrantedPermission.resource_type == resource_type,
                    GrantedPermission.action == action,
                    GrantedPermission.is_active.is_(True),
                )
                .values(is_active=False, revoked_by=revoked_by, updated_at=self._clock())
            )
            revoked = result.rowcount > 0

        logger.info(
            "Revoked %s:%s from user_id=%s by=%s changed=%s",
            resource_type,
            action,
            user_id,
            revoked_by,
            revoked,
        )
        return revoked

    async def apply_template(
        self,
        user_id: int,
        template_name: str,
        granted_by: int | None,
        expires_at: datetime | None = None,
    ) -> list[GrantRecord]:
        """Grant every entry of a configured permission template."""

        template = self._config.template(template_name) if self._config is not None else None
        if template is None:
            raise UnknownTemplate(template_name)

        if expires_at is None and template.expires_in_days:
            expires_at = self._clock() + timedelta(days=template.expires_in_days)

        granted = []
        for entry in template.permissions:
            granted.append(
                await self.grant(user_id, entry.resource_type, entry.action, entry.scope, granted_by, expires_at)
            )
        logger.info("Applied template %r to user_id=%s (%s permissions)", template_name, user_id, len(granted))
        return granted

    # ---- Reads ----------------------------------------------------------------------

    async def list_for_user(self, user_id: int) -> list[GrantRecord]:
        return await self._store.active_grants_for_user(user_id, self._clock())

    async def has_any(self, user_id: int) -> bool:
        return await self._store.has_active_grants(user_id, self._clock())

    async def effective_permissions(self, user_id: int) -> list[EffectivePermission]:
        """
        Base level permissions merged with active overrides.

        Display only; decisions go through AccessDecisionEngine.
        """

        ctx = await self._resolver.get_user_context(user_id)
        if ctx is None:
            raise UserNotFound(user_id)

        merged: dict[tuple[str, str], EffectivePermission] = {}
        level = ctx.privilege_level
        if self._engine.is_custom_level(level):
            custom = await self._store.custom_level(level)
            for entry in custom.permissions if custom is not None else ():
                merged[(entry.resource_type, entry.action)] = EffectivePermission(
                    entry.resource_type, entry.action, entry.scope, source="custom"
                )
        elif self._engine.is_standard_level(level):
            snapshot = await self._cache.get()
            for resource_type, actions in sorted(snapshot.levels.get(level, {}).items()):
                for action, scope in sorted(actions.items()):
                    merged[(resource_type, action)] = EffectivePermission(
                        resource_type, action, scope, source="standard"
                    )

        for grant in await self.list_for_user(user_id):
            key = (grant.resource_type, grant.action)
            base = merged.get(key)
            merged[key] = EffectivePermission(
                resource_type=grant.resource_type,
                action=grant.action,
                scope=grant.scope,
                source="granular",
                overridden=base is not None,
                base_scope=base.scope if base is not None else None,
                granted_by=grant.granted_by,
                granted_at=grant.granted_at,
                expires_at=grant.expires_at,
            )

        return list(merged.values())
