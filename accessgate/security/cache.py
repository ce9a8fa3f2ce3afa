"""
Time-bounded snapshot of the standard permission table.

The standard table is the only permission data read on every decision
without a user-specific key, so it is grouped once as
level -> resource_type -> action -> scope and reused until the TTL elapses.

Replacement is wholesale: a rebuild constructs a new CacheSnapshot and swaps
the reference in one assignment. Readers see either the old or the new
snapshot, never a partial one, and a rebuild abandoned half-way (cancelled
request) simply never reaches the swap. Concurrent rebuilds after expiry are
allowed; they read the same data and the last assignment wins.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
import logging
import time
from typing import Protocol

from accessgate.security.errors import StoreUnavailable
from accessgate.security.scopes import Scope
from accessgate.security.store import StandardRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60


class StandardPermissionSource(Protocol):
    async def standard_permissions(self) -> list[StandardRecord]: ...


@dataclass(frozen=True)
class CacheSnapshot:
    levels: Mapping[int, Mapping[str, Mapping[str, Scope]]] = field(default_factory=dict)
    fetched_at: float = 0.0

    @classmethod
    def from_records(cls, records: list[StandardRecord], fetched_at: float) -> CacheSnapshot:
        grouped: dict[int, dict[str, dict[str, Scope]]] = {}
        for rec in records:
            grouped.setdefault(rec.privilege_level, {}).setdefault(rec.resource_type, {})[rec.action] = rec.scope
        return cls(levels=grouped, fetched_at=fetched_at)

    def scope_for(self, privilege_level: int, resource_type: str, action: str) -> Scope | None:
        return self.levels.get(privilege_level, {}).get(resource_type, {}).get(action)

    def is_empty(self) -> bool:
        return not self.levels


class PermissionCache:
    """
    Lazily refreshed cache of the standard permission table.

    `clock` must be monotonic seconds; tests pass a fake to step over the TTL.
    """

    def __init__(
        self,
        store: StandardPermissionSource,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot: CacheSnapshot | None = None
        # Bumped by invalidate(); a rebuild that started before an
        # invalidation returns its data but does not install it.
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _is_fresh(self, snapshot: CacheSnapshot | None, now: float) -> bool:
        return snapshot is not None and (now - snapshot.fetched_at) < self._ttl

    async def get(self) -> CacheSnapshot:
        snapshot = self._snapshot
        now = self._clock()
        if self._is_fresh(snapshot, now):
            return snapshot

        generation = self._generation
        try:
            records = await self._store.standard_permissions()
        except StoreUnavailable:
            if snapshot is not None:
                # Serve stale; fetched_at is untouched so the next call retries.
                logger.warning("Standard permissions unavailable; serving snapshot fetched_at=%s", snapshot.fetched_at)
                return snapshot
            logger.error("Standard permissions unavailable and no snapshot built yet; denying by default")
            return CacheSnapshot(fetched_at=now)

        fresh = CacheSnapshot.from_records(records, fetched_at=now)
        if generation == self._generation:
            self._snapshot = fresh
        logger.debug("Permission cache rebuilt levels=%s rows=%s", sorted(fresh.levels), len(records))
        return fresh

    def invalidate(self) -> None:
        """Force the next get() to rebuild. The old snapshot stays as the stale fallback."""
        self._generation += 1
        if self._snapshot is not None:
            self._snapshot = replace(self._snapshot, fetched_at=float("-inf"))
        logger.info("Permission cache invalidated")
