"""
Order pricing for an enrollment draft.

Formula
-------
subtotal          = Σ price of each athlete's selected program (unselected → 0)
sibling_discount  = subtotal × rate  when more than one athlete is listed
monthly_total     = subtotal − sibling_discount
registration_fees = athlete_count × registration_fee
total_due         = monthly_total + registration_fees

The discount is keyed on headcount: an athlete still choosing a program adds
nothing to the subtotal but does switch the discount on.

Everything is Decimal and recomputed from scratch on each call; rounding to
cents happens only in ``format_currency``.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from portal.enrollment.models import AthleteDraft, TrainingSession, find_session

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PricingConfig:
    registration_fee:      Decimal = Decimal("30.00")
    sibling_discount_rate: Decimal = Decimal("0.10")
    billing_period_days:   int = 30


@dataclass(frozen=True)
class PricingSnapshot:
    athlete_count:     int
    subtotal:          Decimal
    sibling_discount:  Decimal
    monthly_total:     Decimal
    registration_fees: Decimal
    total_due:         Decimal

    @property
    def has_discount(self) -> bool:
        return self.sibling_discount > 0


def compute_pricing(
    athletes: Sequence[AthleteDraft],
    sessions: Sequence[TrainingSession],
    config: PricingConfig = PricingConfig(),
) -> PricingSnapshot:
    subtotal = Decimal("0")
    for athlete in athletes:
        session = find_session(list(sessions), athlete.selected_session_id)
        if session is not None:
            subtotal += Decimal(session.price)

    count = len(athletes)
    discount = subtotal * config.sibling_discount_rate if count > 1 else Decimal("0")
    monthly_total = subtotal - discount
    registration_fees = count * config.registration_fee

    return PricingSnapshot(
        athlete_count=count,
        subtotal=subtotal,
        sibling_discount=discount,
        monthly_total=monthly_total,
        registration_fees=registration_fees,
        total_due=monthly_total + registration_fees,
    )


def format_currency(amount: Decimal) -> str:
    """``Decimal("120")`` → ``"$120.00"``."""
    return f"${Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)}"
