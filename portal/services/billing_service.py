"""
Billing display — turns stored payment rows into what a parent sees.

Backend status codes are mapped straight onto display labels:
succeeded → Paid, failed → Failed, refunded → Refunded, anything else → Pending.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.models.models import Transaction, TransactionStatus


class DisplayStatus:
    PAID     = "Paid"
    FAILED   = "Failed"
    REFUNDED = "Refunded"
    PENDING  = "Pending"

    EMOJI = {
        PAID:     "✅",
        FAILED:   "❌",
        REFUNDED: "↩️",
        PENDING:  "⏳",
    }


_STATUS_MAP = {
    TransactionStatus.SUCCEEDED: DisplayStatus.PAID,
    TransactionStatus.FAILED:    DisplayStatus.FAILED,
    TransactionStatus.REFUNDED:  DisplayStatus.REFUNDED,
}


def display_status(code: str) -> str:
    return _STATUS_MAP.get(code, DisplayStatus.PENDING)


@dataclass
class Invoice:
    id:           str
    date:         datetime
    description:  str
    amount:       Decimal
    status:       str
    download_url: str = "#"

    @property
    def status_emoji(self) -> str:
        return DisplayStatus.EMOJI.get(self.status, "❓")


def to_invoice(txn: Transaction) -> Invoice:
    return Invoice(
        id=txn.transaction_number or str(txn.id),
        date=txn.processed_at or txn.created_at,
        description=txn.description,
        amount=Decimal(txn.amount),
        status=display_status(txn.status),
        download_url=txn.receipt_url or "#",
    )


async def list_invoices(session: AsyncSession, parent_id: int) -> List[Invoice]:
    result = await session.execute(
        select(Transaction)
        .where(Transaction.parent_id == parent_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    return [to_invoice(t) for t in result.scalars().all()]
