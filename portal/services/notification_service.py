"""
Parent-facing notifications for the enrollment flow.
"""
from __future__ import annotations

import logging

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.utils.markdown import hbold, hcode
from aiogram.utils.text_decorations import html_decoration as html

from portal.enrollment.pricing import format_currency
from portal.enrollment.receipt import ConfirmedEnrollment

logger = logging.getLogger(__name__)

NEW_ACCOUNT_TEXT      = "Enrollment successful! Check your email for login credentials."
EXISTING_ACCOUNT_TEXT = "Enrollment successful! Added to your existing account."


def enrollment_success_text(is_new_account: bool) -> str:
    return NEW_ACCOUNT_TEXT if is_new_account else EXISTING_ACCOUNT_TEXT


def format_receipt(confirmed: ConfirmedEnrollment) -> str:
    sub = confirmed.subscription
    athlete_lines = "\n".join(
        f"• {html.quote(name)} — {html.quote(program)}" for name, program in confirmed.athletes
    )
    return (
        f"🧾 {hbold('Enrollment receipt')}\n"
        f"━━━━━━━━━━━━━━━━━━\n"
        f"{athlete_lines}\n\n"
        f"💳 Paid today: {hcode(format_currency(confirmed.total_paid))}\n"
        f"🔁 Monthly: {hcode(format_currency(sub.amount))} ({sub.status})\n"
        f"📅 Next payment: {sub.next_payment:%b %d, %Y}\n"
    )


async def notify_enrollment_confirmed(
    bot: Bot,
    chat_id: int,
    confirmed: ConfirmedEnrollment,
) -> bool:
    """
    Send the receipt as a standalone message so it survives menu edits.
    Delivery failures (blocked bot, bad chat) are logged, not raised.
    """
    text = f"🎉 {enrollment_success_text(confirmed.is_new_account)}\n\n{format_receipt(confirmed)}"
    try:
        await bot.send_message(chat_id=chat_id, text=text, parse_mode=ParseMode.HTML)
        return True
    except (TelegramForbiddenError, TelegramBadRequest) as e:
        logger.warning("Could not send receipt to chat_id=%d: %s", chat_id, e)
        return False
