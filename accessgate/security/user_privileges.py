"""
Administrative assignment of a user's privilege level and organisational links.

Nothing here is cached: the resolver reads the user row on every decision, so
a new level applies to the next request.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accessgate.models.security import CustomPrivilegeLevel, Department, User
from accessgate.security.errors import InvalidAssignment, UserNotFound
from accessgate.security.store import write_session

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class UserPrivilegeRegistry:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], custom_level_threshold: int = 6) -> None:
        self._session_factory = session_factory
        self._threshold = custom_level_threshold

    async def _check_level(self, session: AsyncSession, privilege_level: int) -> None:
        if 1 <= privilege_level < self._threshold:
            return
        if privilege_level >= self._threshold:
            custom = await session.scalar(
                select(CustomPrivilegeLevel.id).where(
                    CustomPrivilegeLevel.level_number == privilege_level,
                    CustomPrivilegeLevel.is_active.is_(True),
                )
            )
            if custom is not None:
                return
        raise InvalidAssignment(
            f"Privilege level {privilege_level} is neither a standard level (1 to {self._threshold - 1}) "
            f"nor an active custom level"
        )

    async def assign(
        self,
        user_id: int,
        privilege_level: int,
        *,
        assigned_by: int | None,
        department_id: int | None = _UNSET,
        manager_id: int | None = _UNSET,
    ) -> User:
        """
        Set a user's privilege level and, when given, department and manager.

        Omitted links keep their value; an explicit None clears them. Callers
        may not change their own privileges.
        """

        async with write_session(self._session_factory, "user privileges") as session:
            user = await session.scalar(select(User).where(User.id == user_id, User.is_active.is_(True)))
            if user is None:
                raise UserNotFound(user_id)
            if assigned_by is not None and assigned_by == user_id:
                raise InvalidAssignment("Cannot modify your own privileges")

            await self._check_level(session, privilege_level)

            if department_id is not _UNSET and department_id is not None:
                if await session.scalar(select(Department.id).where(Department.id == department_id)) is None:
                    raise InvalidAssignment(f"Department {department_id} not found")
            if manager_id is not _UNSET and manager_id is not None:
                if manager_id == user_id:
                    raise InvalidAssignment("A user cannot be their own manager")
                manager = await session.scalar(select(User.id).where(User.id == manager_id, User.is_active.is_(True)))
                if manager is None:
                    raise InvalidAssignment(f"Manager {manager_id} not found")

            previous = user.privilege_level
            user.privilege_level = privilege_level
            if department_id is not _UNSET:
                user.department_id = department_id
            if manager_id is not _UNSET:
                user.manager_id = manager_id
            await session.flush()

        logger.info(
            "User privileges updated user_id=%s level=%s->%s department_id=%s manager_id=%s by=%s",
            user_id,
            previous,
            privilege_level,
            user.department_id,
            user.manager_id,
            assigned_by,
        )
        return user
