from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.security.cache import PermissionCache
from accessgate.security.config import PrivilegesConfig
from accessgate.security.context import UserContextResolver
from accessgate.security.custom_levels import CustomLevelRegistry
from accessgate.security.engine import AccessDecisionEngine
from accessgate.security.gates import Gate
from accessgate.security.grants import GrantRegistry
from accessgate.security.scoping import ScopeEvaluator
from accessgate.security.standard_levels import StandardLevelCatalog
from accessgate.security.store import PermissionStore
from accessgate.security.user_privileges import UserPrivilegeRegistry
from accessgate.settings import Settings


@dataclass
class AccessServices:
    """Every authorization component of one process, built once at startup."""

    config: PrivilegesConfig
    session_factory: async_sessionmaker[AsyncSession]
    store: PermissionStore
    cache: PermissionCache
    resolver: UserContextResolver
    engine: AccessDecisionEngine
    evaluator: ScopeEvaluator
    gate: Gate
    custom_levels: CustomLevelRegistry
    grants: GrantRegistry
    standard_levels: StandardLevelCatalog
    users: UserPrivilegeRegistry


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    config: PrivilegesConfig,
    settings: Settings,
) -> AccessServices:
    threshold = config.custom_level_threshold

    store = PermissionStore(session_factory)
    cache = PermissionCache(store, ttl_seconds=settings.permission_cache_ttl_seconds)
    resolver = UserContextResolver(session_factory)
    engine = AccessDecisionEngine(store, cache, custom_level_threshold=threshold)
    evaluator = ScopeEvaluator(session_factory, resolver, engine)

    return AccessServices(
        config=config,
        session_factory=session_factory,
        store=store,
        cache=cache,
        resolver=resolver,
        engine=engine,
        evaluator=evaluator,
        gate=Gate(resolver, engine, evaluator),
        custom_levels=CustomLevelRegistry(session_factory, store, custom_level_threshold=threshold),
        grants=GrantRegistry(session_factory, store, resolver, engine, cache, config=config),
        standard_levels=StandardLevelCatalog(session_factory, store, cache, config),
        users=UserPrivilegeRegistry(session_factory, custom_level_threshold=threshold),
    )
