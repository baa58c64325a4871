"""
Parent dashboard: family overview and billing history.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.types import CallbackQuery
from aiogram.utils.markdown import hbold, hcode, hitalic
from aiogram.utils.text_decorations import html_decoration as html
from sqlalchemy.ext.asyncio import AsyncSession

from portal.enrollment.pricing import format_currency
from portal.keyboards import MainMenuCb, back_to_main
from portal.models.models import EnrollmentStatus
from portal.services import get_account_by_telegram, list_family, list_invoices

logger = logging.getLogger(__name__)
router = Router(name="account")

NO_ACCOUNT_TEXT = "No parent account is linked yet. Complete an enrollment first."


@router.callback_query(MainMenuCb.filter(F.action == "family"))
async def cq_family(callback: CallbackQuery, session: AsyncSession) -> None:
    parent = await get_account_by_telegram(session, callback.from_user.id)
    if parent is None:
        await callback.answer(NO_ACCOUNT_TEXT, show_alert=True)
        return

    athletes = await list_family(session, parent.id)
    lines = [f"👨‍👩‍👧 {hbold(parent.display_name)} — family\n"]
    for a in athletes:
        programs = ", ".join(
            f"{e.program.sport} {e.program.level}" for e in a.enrollments if e.status == EnrollmentStatus.ACTIVE
        ) or "no active program"
        lines.append(f"• {html.quote(a.display_name)} ({a.date_of_birth:%d.%m.%Y}) — {html.quote(programs)}")
    if not athletes:
        lines.append(hitalic("No athletes yet."))

    await callback.message.edit_text(
        "\n".join(lines), parse_mode=ParseMode.HTML, reply_markup=back_to_main()
    )
    await callback.answer()


@router.callback_query(MainMenuCb.filter(F.action == "billing"))
async def cq_billing(callback: CallbackQuery, session: AsyncSession) -> None:
    parent = await get_account_by_telegram(session, callback.from_user.id)
    if parent is None:
        await callback.answer(NO_ACCOUNT_TEXT, show_alert=True)
        return

    invoices = await list_invoices(session, parent.id)
    lines = [f"💳 {hbold('Billing history')}\n"]
    for inv in invoices:
        lines.append(
            f"{inv.status_emoji} {hcode(inv.id)} · {inv.date:%b %d, %Y}\n"
            f"    {html.quote(inv.description)}\n"
            f"    {format_currency(inv.amount)} — {inv.status}"
        )
    if not invoices:
        lines.append(hitalic("No payments yet."))

    await callback.message.edit_text(
        "\n".join(lines), parse_mode=ParseMode.HTML, reply_markup=back_to_main()
    )
    await callback.answer()
