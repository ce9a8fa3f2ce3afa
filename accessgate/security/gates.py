"""
Guard checks used at request entry.

Framework-free: each check returns the caller's UserContext or raises. The
FastAPI adapters in accessgate.security.dependencies only translate the
bearer header into a user id and call these.
"""

from __future__ import annotations

import logging

from accessgate.security.context import UserContext, UserContextResolver
from accessgate.security.engine import AccessDecisionEngine
from accessgate.security.errors import InsufficientPrivilege, PermissionDenied, StoreUnavailable, UserContextNotFound
from accessgate.security.scoping import ScopeEvaluator

logger = logging.getLogger(__name__)


class Gate:
    def __init__(self, resolver: UserContextResolver, engine: AccessDecisionEngine, evaluator: ScopeEvaluator) -> None:
        self._resolver = resolver
        self._engine = engine
        self._evaluator = evaluator

    async def _context(self, user_id: int | None, resource_type: str, action: str) -> UserContext:
        if user_id is None:
            raise UserContextNotFound(user_id)
        try:
            ctx = await self._resolver.get_user_context(user_id)
        except StoreUnavailable as exc:
            logger.exception("Gate failed closed: user context unavailable user_id=%s", user_id)
            raise PermissionDenied(resource_type, action) from exc
        if ctx is None:
            raise UserContextNotFound(user_id)
        return ctx

    async def require_minimum_level(self, user_id: int | None, minimum: int) -> UserContext:
        """
        Pass when the caller's numeric level is at least `minimum`.

        This is a plain number comparison, so custom levels (6+) pass every
        standard-level gate.
        """

        ctx = await self._context(user_id, "privilege_level", str(minimum))
        if ctx.privilege_level < minimum:
            logger.info(
                "Insufficient privilege user_id=%s level=%s required=%s", ctx.id, ctx.privilege_level, minimum
            )
            raise InsufficientPrivilege(minimum, ctx.privilege_level)
        return ctx

    async def require_permission(self, user_id: int | None, resource_type: str, action: str) -> UserContext:
        ctx = await self._context(user_id, resource_type, action)
        if not await self._engine.has_permission(ctx.id, ctx.privilege_level, resource_type, action):
            logger.info("Permission denied user_id=%s resource=%s action=%s", ctx.id, resource_type, action)
            raise PermissionDenied(resource_type, action)
        return ctx

    async def require_record_access(
        self,
        user_id: int | None,
        resource_type: str,
        action: str,
        record_id: int,
    ) -> UserContext:
        ctx = await self._context(user_id, resource_type, action)
        if not await self._evaluator.can_access(ctx.id, resource_type, record_id, action, ctx=ctx):
            logger.info(
                "Record access denied user_id=%s resource=%s action=%s record_id=%s",
                ctx.id,
                resource_type,
                action,
                record_id,
            )
            raise PermissionDenied(resource_type, action, record_id)
        return ctx
