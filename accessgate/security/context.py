from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.models.security import Department, User
from accessgate.security.errors import StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserContext:
    """
    Per-request authorization context.

    Small and serializable so it can be attached to request.state and
    returned from the /me/context route as-is.
    """

    id: int
    privilege_level: int
    department_id: int | None
    manager_id: int | None
    department_name: str | None = None
    dept_manager_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def normalize_privilege_level(raw: Any) -> int:
    """
    Coerce a stored privilege level to int, defaulting to 1.

    Guards against corrupt rows (NULL, text, zero); it is not a security
    boundary, levels that do not exist in any table still resolve to deny.
    """

    try:
        level = int(raw)
    except (TypeError, ValueError):
        return 1
    return level or 1


def _optional_int(raw: Any) -> int | None:
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


class UserContextResolver:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_user_context(self, user_id: int) -> UserContext | None:
        """
        Resolve a user id into privilege level, department and manager linkage.

        Returns None when the id does not resolve to an active user; callers
        must treat that as deny, never as an anonymous fallback.
        """

        joined = (
            select(
                User.id,
                User.privilege_level,
                User.department_id,
                User.manager_id,
                Department.name.label("department_name"),
                Department.manager_id.label("dept_manager_id"),
            )
            .outerjoin(Department, User.department_id == Department.id)
            .where(User.id == user_id, User.is_active.is_(True))
        )
        user_only = select(User.id, User.privilege_level, User.department_id, User.manager_id).where(
            User.id == user_id, User.is_active.is_(True)
        )

        row = None
        try:
            async with self._session_factory() as session:
                row = (await session.execute(joined)).mappings().first()
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("User context join failed user_id=%s error=%s; retrying without department", user_id, exc)

        if row is None:
            try:
                async with self._session_factory() as session:
                    row = (await session.execute(user_only)).mappings().first()
            except (SQLAlchemyError, OSError) as exc:
                logger.warning("User context lookup failed user_id=%s error=%s", user_id, exc)
                raise StoreUnavailable(f"Failed to read user {user_id}") from exc

        if row is None:
            logger.info("User context not found user_id=%s", user_id)
            return None

        return UserContext(
            id=int(row["id"]),
            privilege_level=normalize_privilege_level(row["privilege_level"]),
            department_id=_optional_int(row["department_id"]),
            manager_id=_optional_int(row["manager_id"]),
            department_name=row.get("department_name") or None,
            dept_manager_id=_optional_int(row.get("dept_manager_id")),
        )
