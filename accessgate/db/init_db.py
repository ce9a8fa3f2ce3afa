from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from accessgate.db.base import Base
from accessgate.models.hr import Document, Employee, LeaveRequest
from accessgate.models.security import CustomPrivilegeLevel, Department, StandardPermission, User
from accessgate.security.config import PrivilegesConfig
from accessgate.security.scopes import encode_permissions

logger = logging.getLogger(__name__)


async def init_db(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    config: PrivilegesConfig,
    seed_demo_data: bool = True,
) -> None:
    """
    Create tables, seed the privilege tables from configuration and, optionally,
    a small deterministic demo organisation.

    Each part is seeded only while its table is empty, so admin edits made
    through the API survive restarts.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db, db.begin():
        await _seed_standard_permissions(db, config)
        await _seed_custom_levels(db, config)
        if seed_demo_data and not await _has_demo_data(db):
            await _seed_demo(db)


async def _seed_standard_permissions(db: AsyncSession, config: PrivilegesConfig) -> None:
    if (await db.execute(select(StandardPermission.id).limit(1))).first() is not None:
        return
    db.add_all(
        StandardPermission(
            privilege_level=grant.level,
            resource_type=grant.resource_type,
            action=grant.action,
            scope=grant.scope.value,
        )
        for grant in config.model.standard_permissions
    )
    logger.info("Seeded %s standard permissions", len(config.model.standard_permissions))


async def _seed_custom_levels(db: AsyncSession, config: PrivilegesConfig) -> None:
    if (await db.execute(select(CustomPrivilegeLevel.id).limit(1))).first() is not None:
        return
    db.add_all(
        CustomPrivilegeLevel(
            level_number=seed.level_number,
            name=seed.name,
            description=seed.description,
            permissions=encode_permissions(seed.permissions),
            is_active=True,
        )
        for seed in config.model.custom_levels
    )
    logger.info("Seeded %s custom privilege levels", len(config.model.custom_levels))


async def _has_demo_data(db: AsyncSession) -> bool:
    return (await db.execute(select(Department.id).limit(1))).first() is not None


async def _seed_demo(db: AsyncSession) -> None:
    # Departments
    hr = Department(name="Human Resources", description="HR Department")
    it = Department(name="Information Technology", description="IT Department")
    fin = Department(name="Finance", description="Finance Department")
    db.add_all([hr, it, fin])
    await db.flush()

    # Users, one per standard level plus a custom-level holder
    alice = User(username="alice_admin", email="alice.admin@example.com", name="Alice Admin", privilege_level=5, department_id=hr.id)
    harry = User(username="harry_hr", email="harry.hr@example.com", name="Harry HR", privilege_level=4, department_id=hr.id)
    mona = User(username="mona_mgr_it", email="mona.itmgr@example.com", name="Mona Manager", privilege_level=3, department_id=it.id)
    db.add_all([alice, harry, mona])
    await db.flush()

    ed = User(
        username="ed_it",
        email="ed.it@example.com",
        name="Ed Engineer",
        privilege_level=2,
        department_id=it.id,
        manager_id=mona.id,
    )
    fran = User(username="fran_fin", email="fran.fin@example.com", name="Fran Finance", privilege_level=1, department_id=fin.id)
    sam = User(username="sam_senior_hr", email="sam.hr@example.com", name="Sam Specialist", privilege_level=6, department_id=hr.id)
    db.add_all([ed, fran, sam])
    await db.flush()

    hr.manager_id = harry.id
    it.manager_id = mona.id

    # Employees linked to their login accounts
    e_mona = Employee(
        employee_id="E-1000",
        first_name="Mona",
        last_name="Manager",
        email="mona.manager@example.com",
        user_id=mona.id,
        department_id=it.id,
        position="IT Manager",
        hire_date=date(2020, 3, 1),
    )
    e_ed = Employee(
        employee_id="E-1001",
        first_name="Ed",
        last_name="Engineer",
        email="ed.engineer@example.com",
        user_id=ed.id,
        department_id=it.id,
        position="Software Engineer",
        hire_date=date(2022, 6, 1),
    )
    e_ivy = Employee(
        employee_id="E-1002",
        first_name="Ivy",
        last_name="IT",
        email="ivy.it@example.com",
        department_id=it.id,
        position="IT Analyst",
        hire_date=date(2023, 2, 15),
    )
    e_fran = Employee(
        employee_id="E-2001",
        first_name="Fran",
        last_name="Finance",
        email="fran.finance@example.com",
        user_id=fran.id,
        department_id=fin.id,
        position="Accountant",
        hire_date=date(2021, 9, 10),
    )
    db.add_all([e_mona, e_ed, e_ivy, e_fran])
    await db.flush()

    # Leave requests
    db.add_all(
        [
            LeaveRequest(
                employee_id=e_ed.id,
                leave_type="vacation",
                start_date=date(2026, 7, 6),
                end_date=date(2026, 7, 10),
                days_requested=5,
                reason="Summer holiday",
            ),
            LeaveRequest(
                employee_id=e_ivy.id,
                leave_type="sick",
                start_date=date(2026, 2, 2),
                end_date=date(2026, 2, 3),
                days_requested=2,
                status="approved",
            ),
            LeaveRequest(
                employee_id=e_fran.id,
                leave_type="personal",
                start_date=date(2026, 9, 14),
                end_date=date(2026, 9, 14),
                days_requested=1,
            ),
        ]
    )

    # Documents
    db.add_all(
        [
            Document(title="HR Handbook", description="Company-wide policies", uploaded_by=harry.id, department_id=hr.id),
            Document(title="IT Runbook", description="On-call procedures", uploaded_by=mona.id, department_id=it.id),
            Document(title="Ed's onboarding notes", uploaded_by=ed.id, department_id=it.id),
            Document(title="Q3 Budget", uploaded_by=fran.id, department_id=fin.id),
        ]
    )

    logger.info("Seeded demo organisation")
