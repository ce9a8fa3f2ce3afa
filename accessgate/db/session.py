from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from accessgate.settings import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    url = settings.resolved_db_url()
    if not url.startswith("sqlite"):
        return create_async_engine(url)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url or url.endswith("://"):
        # One shared connection, otherwise every session sees its own empty database.
        kwargs["poolclass"] = StaticPool
    return create_async_engine(url, **kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by every authorization component.

    Each store read opens its own short-lived session, so a request that is
    cancelled mid-read never leaves shared state half-updated.
    """

    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
