"""
Confirmation view-model built once the enrollment service accepted the order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Sequence, Tuple

from portal.enrollment.models import EnrollmentDraft, TrainingSession, find_session
from portal.enrollment.pricing import PricingSnapshot

FALLBACK_PROGRAM_LABEL = "Program"


@dataclass(frozen=True)
class SubscriptionDescriptor:
    program:      str
    status:       str
    next_payment: date
    amount:       Decimal


@dataclass(frozen=True)
class ConfirmedEnrollment:
    parent_name:    str
    email:          str
    total_paid:     Decimal
    athletes:       Tuple[Tuple[str, str], ...]   # (athlete name, program label)
    subscription:   SubscriptionDescriptor
    is_new_account: bool = False
    submitted_on:   date = field(default_factory=date.today)

    @property
    def athlete_names(self) -> List[str]:
        return [name for name, _ in self.athletes]


def assemble_receipt(
    draft: EnrollmentDraft,
    sessions: Sequence[TrainingSession],
    pricing: PricingSnapshot,
    submitted_on: date,
    is_new_account: bool = False,
    billing_period_days: int = 30,
) -> ConfirmedEnrollment:
    rows = []
    for athlete in draft.athletes:
        session = find_session(list(sessions), athlete.selected_session_id)
        rows.append((athlete.name, session.label if session else FALLBACK_PROGRAM_LABEL))

    subscription = SubscriptionDescriptor(
        program=", ".join(label for _, label in rows),
        status="Active",
        next_payment=submitted_on + timedelta(days=billing_period_days),
        amount=pricing.monthly_total,
    )
    return ConfirmedEnrollment(
        parent_name=draft.parent_name,
        email=draft.email,
        total_paid=pricing.total_due,
        athletes=tuple(rows),
        subscription=subscription,
        is_new_account=is_new_account,
        submitted_on=submitted_on,
    )
