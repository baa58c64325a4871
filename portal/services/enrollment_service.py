"""
Enrollment service — persists a public (not logged-in) enrollment.

One call creates or reuses the parent account (matched by email), creates the
athletes, links them to the parent, opens an active enrollment per athlete,
bumps program headcounts and records the payment.

Availability is checked before anything is written, and seats are then taken
with a conditional UPDATE so concurrent requests cannot oversell a program. A
rejected request leaves the database untouched. The catalog the wizard used
may be stale: this service is the authority on capacity.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal.enrollment.models import AthleteDraft
from portal.enrollment.pricing import PricingConfig, compute_pricing
from portal.enrollment.submission import (
    EnrollmentRejected,
    EnrollmentRequest,
    EnrollmentResponse,
)
from portal.models.models import (
    Athlete,
    Enrollment,
    EnrollmentStatus,
    ParentAthlete,
    Program,
    Transaction,
    TransactionStatus,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


def mask_card(card_number: str) -> str:
    digits = card_number.replace(" ", "")
    return f"Card •••• {digits[-4:]}" if digits else "Credit Card"


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(
        select(User).where(User.email == email.strip().lower())
    )
    return result.scalar_one_or_none()


async def find_or_create_parent(
    session: AsyncSession,
    email: str,
    first_name: str,
    last_name: str,
    phone: Optional[str],
) -> Tuple[User, bool]:
    """Returns (parent, is_new_account)."""
    user = await get_user_by_email(session, email)
    if user is not None:
        if phone and not user.phone:
            user.phone = phone
        return user, False

    user = User(
        email=email.strip().lower(),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=UserRole.PARENT,
    )
    session.add(user)
    await session.flush()
    logger.info("Created parent account id=%d", user.id)
    return user, True


async def _load_programs(session: AsyncSession, ids: List[str]) -> Dict[str, Program]:
    result = await session.execute(select(Program).where(Program.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


async def _reserve_seats(session: AsyncSession, program_id: str, seats: int) -> bool:
    """
    Take ``seats`` places in one conditional UPDATE. The capacity check runs in
    the database, so two parents racing for the last seat cannot both get it.
    """
    result = await session.execute(
        update(Program)
        .where(Program.id == program_id, Program.registered_count + seats <= Program.capacity)
        .values(registered_count=Program.registered_count + seats)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_seats(session: AsyncSession, program_id: str, seats: int) -> None:
    await session.execute(
        update(Program)
        .where(Program.id == program_id)
        .values(registered_count=Program.registered_count - seats)
        .execution_options(synchronize_session=False)
    )


async def create_public_enrollment(
    session: AsyncSession,
    request: EnrollmentRequest,
    pricing: PricingConfig = PricingConfig(),
) -> Tuple[Optional[EnrollmentResponse], str]:
    """
    Persist an enrollment request.
    Returns (response, error_message). error_message is empty on success.
    """
    parent_info = request.parent_info
    if not parent_info.email or not parent_info.first_name or not parent_info.last_name:
        return None, "Parent information is required"
    if not request.athletes:
        return None, "At least one athlete is required"

    # ── Availability checks (nothing written yet) ─────────────────────────────
    wanted = [a.session_id for a in request.athletes]
    programs = await _load_programs(session, list(set(wanted)))

    seats: Dict[str, int] = {}
    for session_id in wanted:
        program = programs.get(session_id)
        if program is None:
            return None, f"Program '{session_id}' is no longer available"
        seats[session_id] = seats.get(session_id, 0) + 1

    for session_id, needed in seats.items():
        program = programs[session_id]
        if program.registered_count + needed > program.capacity:
            return None, f"{program.sport} {program.level} is full"

    # ── Seat reservation ──────────────────────────────────────────────────────
    reserved: List[Tuple[str, int]] = []
    for session_id, needed in seats.items():
        if not await _reserve_seats(session, session_id, needed):
            for done_id, done in reserved:
                await _release_seats(session, done_id, done)
            program = programs[session_id]
            logger.warning("Capacity race lost for %s (%d seats)", session_id, needed)
            return None, f"{program.sport} {program.level} is full"
        reserved.append((session_id, needed))
    for program in programs.values():
        await session.refresh(program, ["registered_count"])

    # ── Writes ────────────────────────────────────────────────────────────────
    parent, is_new = await find_or_create_parent(
        session,
        email=parent_info.email,
        first_name=parent_info.first_name,
        last_name=parent_info.last_name,
        phone=parent_info.phone,
    )

    enrollment_ids: List[int] = []
    for data in request.athletes:
        program = programs[data.session_id]
        athlete = Athlete(
            first_name=data.first_name,
            last_name=data.last_name,
            date_of_birth=data.date_of_birth,
            gender=data.gender or "Male",
            jersey_size=data.jersey_size or "M",
        )
        session.add(athlete)
        await session.flush()

        session.add(ParentAthlete(parent_id=parent.id, athlete_id=athlete.id))
        enrollment = Enrollment(
            athlete_id=athlete.id,
            program_id=program.id,
            status=EnrollmentStatus.ACTIVE,
            monthly_price=program.price,
            start_date=date.today(),
        )
        session.add(enrollment)
        await session.flush()
        enrollment_ids.append(enrollment.id)

    # Same formula the wizard displayed, re-derived from authoritative prices
    order = compute_pricing(
        [AthleteDraft(selected_session_id=a.session_id) for a in request.athletes],
        [programs[sid].to_catalog_entry() for sid in seats],
        pricing,
    )
    session.add(Transaction(
        transaction_number=f"TXN-{uuid.uuid4().hex[:12].upper()}",
        parent_id=parent.id,
        description=_describe(request, programs),
        amount=order.total_due,
        status=TransactionStatus.SUCCEEDED,
        payment_method=mask_card(request.payment_info.card_number),
        processed_at=datetime.now(),
    ))
    await session.flush()

    logger.info(
        "Enrollment stored: parent=%d new=%s athletes=%d total=%s",
        parent.id, is_new, len(request.athletes), order.total_due,
    )
    return EnrollmentResponse(
        is_new_account=is_new,
        parent_id=parent.id,
        enrollment_ids=enrollment_ids,
    ), ""


def _describe(request: EnrollmentRequest, programs: Dict[str, Program]) -> str:
    labels = [f"{programs[a.session_id].sport} {programs[a.session_id].level}" for a in request.athletes]
    return "Enrollment: " + ", ".join(labels) + " + registration"


class DatabaseEnrollmentGateway:
    """Adapts ``create_public_enrollment`` to the wizard's gateway protocol."""

    def __init__(self, session: AsyncSession, pricing: PricingConfig = PricingConfig()) -> None:
        self._session = session
        self._pricing = pricing

    async def enroll(self, request: EnrollmentRequest) -> EnrollmentResponse:
        response, error = await create_public_enrollment(self._session, request, self._pricing)
        if error:
            raise EnrollmentRejected(error)
        return response
