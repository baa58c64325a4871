"""
Program catalog — loading the immutable snapshot each wizard works against.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.enrollment.models import ProgramStatus, TrainingSession
from portal.models.models import Program

logger = logging.getLogger(__name__)

DEFAULT_PROGRAMS: List[dict] = [
    dict(
        id="bb-jr", sport="Basketball", level="Junior Boys", gender="Male",
        min_age=9, max_age=12, price=Decimal("90.00"), capacity=20, registered_count=12,
        status=ProgramStatus.OPEN, schedule="Every Saturday 4:15 PM - 5:15 PM",
        location="Main Gym", head_coach="Ugur Yildiz",
    ),
    dict(
        id="bb-sr", sport="Basketball", level="Senior Boys", gender="Male",
        min_age=12, max_age=18, price=Decimal("90.00"), capacity=20, registered_count=18,
        status=ProgramStatus.LIMITED, schedule="Every Saturday 5:15 PM - 6:30 PM",
        location="Main Gym", head_coach="Ugur Yildiz",
    ),
    dict(
        id="vb-jr", sport="Volleyball", level="Junior Girls", gender="Female",
        min_age=8, max_age=12, price=Decimal("90.00"), capacity=20, registered_count=8,
        status=ProgramStatus.OPEN, schedule="Every Saturday 10:30 AM - 11:30 AM",
        location="Court B", head_coach="Tuba Yildiz",
    ),
    dict(
        id="vb-sr", sport="Volleyball", level="Senior Girls", gender="Female",
        min_age=12, max_age=18, price=Decimal("90.00"), capacity=20, registered_count=19,
        status=ProgramStatus.WAITLIST_SOON, schedule="Every Saturday 9:15 AM - 10:30 AM",
        location="Court B", head_coach="Tuba Yildiz",
    ),
]


async def list_programs(session: AsyncSession, include_archived: bool = False) -> List[Program]:
    q = select(Program).order_by(Program.sport, Program.min_age, Program.id)
    if not include_archived:
        q = q.where(Program.status != ProgramStatus.ARCHIVED)
    result = await session.execute(q)
    return list(result.scalars().all())


async def load_catalog(session: AsyncSession) -> List[TrainingSession]:
    """Detached, frozen copy of the catalog for one wizard."""
    return [p.to_catalog_entry() for p in await list_programs(session)]


async def seed_default_programs(session: AsyncSession) -> int:
    """Insert the default catalog into an empty programs table. Returns rows added."""
    count = await session.scalar(select(func.count()).select_from(Program))
    if count:
        return 0
    session.add_all(Program(**data) for data in DEFAULT_PROGRAMS)
    await session.flush()
    logger.info("Seeded %d default programs", len(DEFAULT_PROGRAMS))
    return len(DEFAULT_PROGRAMS)
