"""
Common handlers: /start, main menu routing.
"""
import logging

from aiogram import F, Router
from aiogram.enums import ParseMode
from aiogram.filters import CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message
from aiogram.utils.text_decorations import html_decoration as html
from sqlalchemy.ext.asyncio import AsyncSession

from portal.enrollment import WizardRegistry
from portal.keyboards import MainMenuCb, main_menu
from portal.services import get_account_by_telegram

logger = logging.getLogger(__name__)
router = Router(name="common")

WELCOME_TEXT = (
    "🏀 Welcome to the <b>Academy Portal</b>, {name}!\n\n"
    "Here you can:\n"
    "• 📝 Enroll your children in a training program\n"
    "• 👨‍👩‍👧 See your family's programs\n"
    "• 💳 Review payments\n\n"
    "Choose an action:"
)


# ── /start ────────────────────────────────────────────────────────────────────

@router.message(CommandStart())
async def cmd_start(message: Message, session: AsyncSession, state: FSMContext) -> None:
    await state.clear()
    account = await get_account_by_telegram(session, message.from_user.id)
    await message.answer(
        WELCOME_TEXT.format(name=html.quote(message.from_user.first_name)),
        parse_mode=ParseMode.HTML,
        reply_markup=main_menu(has_account=account is not None),
    )


# ── Main menu callback ────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "main"))
async def cq_main_menu(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardRegistry,
) -> None:
    # Leaving to the menu abandons any unfinished enrollment
    await state.clear()
    wizards.discard(callback.from_user.id)

    account = await get_account_by_telegram(session, callback.from_user.id)
    await callback.message.edit_text(
        "🏀 <b>Academy Portal</b>\n\nChoose an action:",
        parse_mode=ParseMode.HTML,
        reply_markup=main_menu(has_account=account is not None),
    )
    await callback.answer()


@router.callback_query(F.data == "noop")
async def cq_noop(callback: CallbackQuery) -> None:
    await callback.answer()
