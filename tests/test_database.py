"""
Integration tests — Database services (catalog / enrollment / account / billing).

Each test function receives a fresh in-memory SQLite database through the
`async_session` fixture defined in conftest.py.  No external services or
files are touched.

Coverage:
  - Default catalog seeding and loading
  - Public enrollment: new parent, returning parent, capacity and unknown programs
  - Gateway adapter error mapping
  - Telegram account linking and family listing
  - Billing status mapping and invoice history
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from portal.enrollment import EnrollmentRejected, EnrollmentRequest, assemble_receipt, compute_pricing
from portal.enrollment.models import AthleteDraft, EnrollmentDraft, ProgramStatus
from portal.enrollment.submission import AthletePayload, ParentInfo, PaymentInfo
from portal.models.models import Athlete, Enrollment, Program, Transaction, TransactionStatus, User
from portal.services import (
    DatabaseEnrollmentGateway,
    DisplayStatus,
    create_public_enrollment,
    display_status,
    establish_account,
    get_account_by_telegram,
    list_family,
    list_invoices,
    list_programs,
    load_catalog,
    mask_card,
    seed_default_programs,
)


# ─────────────────────────── Helpers ──────────────────────────────────────────

def _request(*session_ids: str, email: str = "jane@example.com") -> EnrollmentRequest:
    return EnrollmentRequest(
        parent_info=ParentInfo(email=email, first_name="Jane", last_name="Doe", phone="(555) 123-4567"),
        athletes=[
            AthletePayload(
                first_name=f"Kid{i}",
                last_name="Doe",
                date_of_birth=date(2015, 3, 1),
                session_id=sid,
            )
            for i, sid in enumerate(session_ids)
        ],
        payment_info=PaymentInfo(card_number="4242 4242 4242 4242", expiry="12/29", cvc="123"),
    )


async def _count(session, model) -> int:
    return await session.scalar(select(func.count()).select_from(model))


@pytest.fixture
async def seeded(async_session):
    await seed_default_programs(async_session)
    await async_session.commit()
    return async_session


# ─────────────────────────── Catalog ──────────────────────────────────────────

class TestCatalog:
    async def test_seed_is_idempotent(self, async_session) -> None:
        assert await seed_default_programs(async_session) == 4
        await async_session.commit()
        assert await seed_default_programs(async_session) == 0
        assert await _count(async_session, Program) == 4

    async def test_archived_programs_hidden(self, seeded) -> None:
        program = await seeded.get(Program, "bb-jr")
        program.status = ProgramStatus.ARCHIVED
        await seeded.commit()

        ids = [p.id for p in await list_programs(seeded)]
        assert "bb-jr" not in ids
        assert len(await list_programs(seeded, include_archived=True)) == 4

    async def test_load_catalog_snapshot(self, seeded) -> None:
        catalog = await load_catalog(seeded)
        bb = next(s for s in catalog if s.id == "bb-jr")
        assert bb.price == Decimal("90.00")
        assert bb.label == "Basketball Junior Boys"
        assert bb.spots_left == 8


# ─────────────────────────── Enrollment ───────────────────────────────────────

class TestCreatePublicEnrollment:
    async def test_new_parent(self, seeded) -> None:
        response, error = await create_public_enrollment(seeded, _request("bb-jr"))
        await seeded.commit()

        assert error == ""
        assert response.is_new_account is True
        assert len(response.enrollment_ids) == 1

        parent = await seeded.get(User, response.parent_id)
        assert parent.email == "jane@example.com"
        assert parent.display_name == "Jane Doe"

        program = await seeded.get(Program, "bb-jr")
        assert program.registered_count == 13

        txn = (await seeded.execute(select(Transaction))).scalar_one()
        assert txn.amount == Decimal("120.00")
        assert txn.status == TransactionStatus.SUCCEEDED
        assert txn.payment_method == "Card •••• 4242"

    async def test_sibling_total_uses_discount(self, seeded) -> None:
        response, _ = await create_public_enrollment(seeded, _request("bb-jr", "vb-jr"))
        await seeded.commit()

        txn = (await seeded.execute(select(Transaction))).scalar_one()
        # 180 - 18 + 2 × 30
        assert txn.amount == Decimal("222.00")
        assert len(response.enrollment_ids) == 2

    async def test_returning_parent_matched_by_email(self, seeded) -> None:
        await create_public_enrollment(seeded, _request("bb-jr"))
        await seeded.commit()

        response, error = await create_public_enrollment(seeded, _request("vb-jr", email="JANE@example.com"))
        await seeded.commit()

        assert error == ""
        assert response.is_new_account is False
        assert await _count(seeded, User) == 1
        assert await _count(seeded, Athlete) == 2

    async def test_full_program_rejected_before_writes(self, seeded) -> None:
        # vb-sr has one seat left
        response, error = await create_public_enrollment(seeded, _request("vb-sr", "vb-sr"))

        assert response is None
        assert error == "Volleyball Senior Girls is full"
        assert await _count(seeded, User) == 0
        assert await _count(seeded, Enrollment) == 0

    async def test_stale_headcount_cannot_oversell(self, seeded) -> None:
        # Another request takes the last vb-sr seat behind this session's back
        program = await seeded.get(Program, "vb-sr")
        await seeded.execute(
            update(Program)
            .where(Program.id == "vb-sr")
            .values(registered_count=Program.capacity)
            .execution_options(synchronize_session=False)
        )
        assert program.registered_count < program.capacity

        response, error = await create_public_enrollment(seeded, _request("vb-sr"))
        assert response is None
        assert error == "Volleyball Senior Girls is full"
        assert await _count(seeded, Enrollment) == 0

    async def test_lost_race_releases_other_seats(self, seeded) -> None:
        await seeded.get(Program, "vb-sr")
        await seeded.execute(
            update(Program)
            .where(Program.id == "vb-sr")
            .values(registered_count=Program.capacity)
            .execution_options(synchronize_session=False)
        )

        _, error = await create_public_enrollment(seeded, _request("bb-jr", "vb-sr"))
        assert error == "Volleyball Senior Girls is full"
        headcount = await seeded.scalar(select(Program.registered_count).where(Program.id == "bb-jr"))
        assert headcount == 12

    async def test_headcount_grows_by_seats_taken(self, seeded) -> None:
        await create_public_enrollment(seeded, _request("bb-jr", "bb-jr"))
        await seeded.commit()
        headcount = await seeded.scalar(select(Program.registered_count).where(Program.id == "bb-jr"))
        assert headcount == 14

    async def test_unknown_program(self, seeded) -> None:
        response, error = await create_public_enrollment(seeded, _request("hockey"))
        assert response is None
        assert error == "Program 'hockey' is no longer available"

    async def test_gateway_raises_rejection(self, seeded) -> None:
        gateway = DatabaseEnrollmentGateway(seeded)
        with pytest.raises(EnrollmentRejected) as exc:
            await gateway.enroll(_request("hockey"))
        assert exc.value.message == "Program 'hockey' is no longer available"

    async def test_gateway_success(self, seeded) -> None:
        response = await DatabaseEnrollmentGateway(seeded).enroll(_request("bb-sr"))
        assert response.is_new_account is True


def test_mask_card() -> None:
    assert mask_card("4242 4242 4242 1234") == "Card •••• 1234"
    assert mask_card("") == "Credit Card"


# ─────────────────────────── Account hand-off ─────────────────────────────────

def _confirmed(catalog, email: str = "jane@example.com"):
    draft = EnrollmentDraft(
        athletes=[AthleteDraft(name="Kid0 Doe", selected_session_id="bb-jr")],
        parent_name="Jane Doe",
        email=email,
    )
    pricing = compute_pricing(draft.athletes, catalog)
    return assemble_receipt(draft, catalog, pricing, submitted_on=date(2026, 10, 19), is_new_account=True)


class TestAccount:
    async def test_establish_links_telegram(self, seeded) -> None:
        await create_public_enrollment(seeded, _request("bb-jr"))
        await seeded.commit()
        catalog = await load_catalog(seeded)

        account = await establish_account(seeded, 555, _confirmed(catalog))
        await seeded.commit()

        assert account.user_id is not None
        assert account.name == "Jane Doe"
        assert account.athletes == ["Kid0 Doe"]
        assert account.subscription.program == "Basketball Junior Boys"

        user = await get_account_by_telegram(seeded, 555)
        assert user.id == account.user_id

    async def test_relink_moves_telegram_id(self, seeded) -> None:
        await create_public_enrollment(seeded, _request("bb-jr"))
        await create_public_enrollment(seeded, _request("vb-jr", email="other@example.com"))
        await seeded.commit()
        catalog = await load_catalog(seeded)

        first = await establish_account(seeded, 555, _confirmed(catalog))
        second = await establish_account(seeded, 555, _confirmed(catalog, "other@example.com"))
        await seeded.commit()

        assert first.user_id != second.user_id
        user = await get_account_by_telegram(seeded, 555)
        assert user.email == "other@example.com"

    async def test_unknown_email_is_not_persisted(self, seeded) -> None:
        catalog = await load_catalog(seeded)
        account = await establish_account(seeded, 555, _confirmed(catalog, "ghost@example.com"))
        assert account.user_id is None
        assert await get_account_by_telegram(seeded, 555) is None

    async def test_list_family(self, seeded) -> None:
        response, _ = await create_public_enrollment(seeded, _request("bb-jr", "vb-jr"))
        await seeded.commit()

        family = await list_family(seeded, response.parent_id)
        assert [a.first_name for a in family] == ["Kid0", "Kid1"]
        assert family[0].enrollments[0].program.sport == "Basketball"
        assert family[1].enrollments[0].program.id == "vb-jr"


# ─────────────────────────── Billing ──────────────────────────────────────────

@pytest.mark.parametrize("code,expected", [
    (TransactionStatus.SUCCEEDED, DisplayStatus.PAID),
    (TransactionStatus.FAILED,    DisplayStatus.FAILED),
    (TransactionStatus.REFUNDED,  DisplayStatus.REFUNDED),
    (TransactionStatus.PENDING,   DisplayStatus.PENDING),
    ("something-new",             DisplayStatus.PENDING),
])
def test_display_status(code: str, expected: str) -> None:
    assert display_status(code) == expected


class TestInvoices:
    async def test_enrollment_creates_paid_invoice(self, seeded) -> None:
        response, _ = await create_public_enrollment(seeded, _request("bb-jr"))
        await seeded.commit()

        invoices = await list_invoices(seeded, response.parent_id)
        assert len(invoices) == 1
        inv = invoices[0]
        assert inv.id.startswith("TXN-")
        assert inv.status == DisplayStatus.PAID
        assert inv.status_emoji == "✅"
        assert inv.amount == Decimal("120.00")
        assert "Basketball Junior Boys" in inv.description

    async def test_no_invoices_for_stranger(self, seeded) -> None:
        assert await list_invoices(seeded, 999) == []
