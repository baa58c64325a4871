"""
Account hand-off — turns a confirmed enrollment into a logged-in parent.

The enrollment service creates (or finds) the parent account by email; here the
Telegram user who completed the wizard is linked to it, and a lightweight
AccountSession view is returned for the dashboard.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal.enrollment.receipt import ConfirmedEnrollment, SubscriptionDescriptor
from portal.models.models import Athlete, Enrollment, ParentAthlete, User, UserRole
from portal.services.enrollment_service import get_user_by_email

logger = logging.getLogger(__name__)


@dataclass
class AccountSession:
    user_id:      Optional[int]
    name:         str
    email:        str
    role:         str = UserRole.PARENT
    athletes:     List[str] = field(default_factory=list)
    subscription: Optional[SubscriptionDescriptor] = None


async def establish_account(
    session: AsyncSession,
    telegram_id: int,
    confirmed: ConfirmedEnrollment,
) -> AccountSession:
    """
    Link ``telegram_id`` to the parent account behind ``confirmed``.
    A Telegram user can only be linked to one account; any older link is moved.
    """
    user = await get_user_by_email(session, confirmed.email)
    if user is not None and user.telegram_id != telegram_id:
        await session.execute(
            update(User).where(User.telegram_id == telegram_id).values(telegram_id=None)
        )
        user.telegram_id = telegram_id
        await session.flush()
        logger.info("Linked telegram_id=%d to parent id=%d", telegram_id, user.id)
    elif user is None:
        logger.warning("No parent account for %s; session is not persisted", confirmed.email)

    return AccountSession(
        user_id=user.id if user else None,
        name=confirmed.parent_name,
        email=confirmed.email,
        role=user.role if user else UserRole.PARENT,
        athletes=confirmed.athlete_names,
        subscription=confirmed.subscription,
    )


async def get_account_by_telegram(session: AsyncSession, telegram_id: int) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()


async def list_family(session: AsyncSession, parent_id: int) -> List[Athlete]:
    """Athletes linked to a parent, with their enrollments and programs loaded."""
    result = await session.execute(
        select(Athlete)
        .join(ParentAthlete, ParentAthlete.athlete_id == Athlete.id)
        .where(ParentAthlete.parent_id == parent_id)
        .options(selectinload(Athlete.enrollments).selectinload(Enrollment.program))
        .order_by(Athlete.id)
    )
    return list(result.scalars().all())
