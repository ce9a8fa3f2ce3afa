"""
Access decision engine.

Answers "may user U perform ACTION on RESOURCE (at SCOPE)?" from three
independent permission sources, consulted in strict precedence:

1. granular override for (user, resource, action), active and unexpired;
2. custom privilege level (level >= threshold), a closed namespace: a missing
   or inactive level, or a level without a matching entry, denies;
3. standard privilege level (1 .. threshold-1), read from the cached table;
4. otherwise deny.

The engine holds no state of its own. Store failures are logged and become
deny; the engine never fails open.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from accessgate.db.base import utcnow
from accessgate.security.cache import PermissionCache
from accessgate.security.errors import StoreUnavailable
from accessgate.security.scopes import Scope, scope_satisfies
from accessgate.security.store import PermissionStore

logger = logging.getLogger(__name__)

STANDARD_LEVEL_MIN = 1
DEFAULT_CUSTOM_LEVEL_THRESHOLD = 6


class AccessDecisionEngine:
    def __init__(
        self,
        store: PermissionStore,
        cache: PermissionCache,
        custom_level_threshold: int = DEFAULT_CUSTOM_LEVEL_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._cache = cache
        self._threshold = custom_level_threshold
        self._clock = clock

    @property
    def custom_level_threshold(self) -> int:
        return self._threshold

    def is_custom_level(self, privilege_level: int) -> bool:
        return privilege_level >= self._threshold

    def is_standard_level(self, privilege_level: int) -> bool:
        return STANDARD_LEVEL_MIN <= privilege_level < self._threshold

    async def _resolve(self, user_id: int, privilege_level: int, resource_type: str, action: str) -> tuple[Scope | None, str]:
        grant = await self._store.active_grant(user_id, resource_type, action, self._clock())
        if grant is not None:
            return grant.scope, "granular"

        if self.is_custom_level(privilege_level):
            level = await self._store.custom_level(privilege_level)
            if level is None:
                return None, "custom level missing"
            entry = level.find(resource_type, action)
            return (entry.scope, "custom") if entry is not None else (None, "custom")

        if self.is_standard_level(privilege_level):
            snapshot = await self._cache.get()
            return snapshot.scope_for(privilege_level, resource_type, action), "standard"

        return None, "unknown level"

    async def resolve_scope(
        self,
        user_id: int,
        privilege_level: int,
        resource_type: str,
        action: str,
    ) -> Scope | None:
        """Effective scope for (user, resource, action), or None when nothing grants it."""

        try:
            scope, source = await self._resolve(user_id, privilege_level, resource_type, action)
        except StoreUnavailable:
            logger.exception(
                "Access decision failed closed user_id=%s resource=%s action=%s",
                user_id,
                resource_type,
                action,
            )
            return None

        logger.debug(
            "Resolved scope user_id=%s level=%s resource=%s action=%s scope=%s source=%s",
            user_id,
            privilege_level,
            resource_type,
            action,
            scope.value if scope else None,
            source,
        )
        return scope

    async def has_permission(
        self,
        user_id: int,
        privilege_level: int,
        resource_type: str,
        action: str,
        scope: Scope | str | None = None,
    ) -> bool:
        """
        Decide whether the action is permitted.

        With `scope` given, the resolved scope must cover it ("all" covers
        everything; "department" and "own" only themselves).
        """

        requested = Scope(scope) if scope is not None else None
        granted = await self.resolve_scope(user_id, privilege_level, resource_type, action)
        allowed = scope_satisfies(granted, requested)
        if not allowed:
            logger.debug(
                "Denied user_id=%s level=%s resource=%s action=%s requested=%s granted=%s",
                user_id,
                privilege_level,
                resource_type,
                action,
                requested.value if requested else None,
                granted.value if granted else None,
            )
        return allowed
