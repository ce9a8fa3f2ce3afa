"""
Scope-based data filtering.

ScopeEvaluator.filter() narrows a list query to what the caller may read;
ScopeEvaluator.can_access() answers the same question for a single record.
Both take the scope from AccessDecisionEngine (so overrides and custom levels
apply) and the row predicate from the declared ResourcePolicy. When anything
is unresolved they return nothing rather than everything.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.security.context import UserContext, UserContextResolver
from accessgate.security.engine import AccessDecisionEngine
from accessgate.security.errors import StoreUnavailable
from accessgate.security.resources import ResourcePolicy, get_policy
from accessgate.security.scopes import Scope

logger = logging.getLogger(__name__)


def _selects_model(stmt: Select[Any], model: type[Any]) -> bool:
    return any(desc.get("entity") is model for desc in stmt.column_descriptions)


class ScopeEvaluator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        resolver: UserContextResolver,
        engine: AccessDecisionEngine,
    ) -> None:
        self._session_factory = session_factory
        self._resolver = resolver
        self._engine = engine

    async def _context(self, user_id: int, ctx: UserContext | None) -> UserContext | None:
        if ctx is not None:
            return ctx
        try:
            return await self._resolver.get_user_context(user_id)
        except StoreUnavailable:
            logger.exception("Scope evaluation failed closed: user context unavailable user_id=%s", user_id)
            return None

    async def _scope(self, ctx: UserContext, policy: ResourcePolicy, action: str) -> Scope | None:
        return await self._engine.resolve_scope(ctx.id, ctx.privilege_level, policy.resource_type, action)

    async def filter(
        self,
        user_id: int,
        resource_type: str,
        base_query: Select[Any],
        *,
        ctx: UserContext | None = None,
    ) -> list[Any]:
        """
        Run `base_query` restricted to the caller's read scope.

        `base_query` must select the resource's model (e.g. `select(Employee)`
        for "employees"). Single-entity selects return ORM objects, other
        selects return rows.
        """

        policy = get_policy(resource_type)
        if policy is None:
            logger.warning("No resource policy for resource=%s; returning no rows", resource_type)
            return []
        if not _selects_model(base_query, policy.model):
            raise ValueError(f"base query does not select {policy.model.__name__} for resource {resource_type!r}")

        ctx = await self._context(user_id, ctx)
        if ctx is None:
            return []

        scope = await self._scope(ctx, policy, "read")
        if scope is None:
            return []

        stmt = base_query
        if scope != Scope.ALL:
            predicate = policy.criteria(scope, ctx)
            if predicate is None:
                logger.debug(
                    "Scope %s not expressible for resource=%s user_id=%s; returning no rows",
                    scope.value,
                    resource_type,
                    ctx.id,
                )
                return []
            stmt = base_query.where(predicate)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                if len(stmt.column_descriptions) == 1:
                    return list(result.scalars().all())
                return list(result.all())
        except SQLAlchemyError:
            logger.exception("Filtered query failed resource=%s user_id=%s; returning no rows", resource_type, ctx.id)
            return []

    async def can_access(
        self,
        user_id: int,
        resource_type: str,
        record_id: int,
        action: str = "read",
        *,
        ctx: UserContext | None = None,
    ) -> bool:
        """Single-record variant of filter(): may the caller perform `action` on this row?"""

        policy = get_policy(resource_type)
        if policy is None:
            logger.warning("No resource policy for resource=%s; denying record access", resource_type)
            return False

        ctx = await self._context(user_id, ctx)
        if ctx is None:
            return False

        scope = await self._scope(ctx, policy, action)
        if scope is None:
            return False

        predicate = policy.criteria(scope, ctx)
        if predicate is None:
            return False

        stmt = select(policy.primary_key).where(policy.primary_key == record_id, predicate).limit(1)
        try:
            async with self._session_factory() as session:
                found = (await session.execute(stmt)).first() is not None
        except SQLAlchemyError:
            logger.exception("Record access check failed resource=%s record_id=%s; denying", resource_type, record_id)
            return False

        logger.debug(
            "Record access user_id=%s resource=%s record_id=%s action=%s scope=%s allowed=%s",
            ctx.id,
            resource_type,
            record_id,
            action,
            scope.value,
            found,
        )
        return found
