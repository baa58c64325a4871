"""
Global fallback handler — included LAST in the dispatcher.

Catches any callback query that no other router handled, e.g. buttons from a
wizard that was lost when the bot restarted.
"""
from aiogram import Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery

from portal.keyboards import main_menu

router = Router(name="fallback")


@router.callback_query()
async def cq_fallback(callback: CallbackQuery, state: FSMContext) -> None:
    await callback.answer("⚠️ This button has expired. Please start again.", show_alert=True)
    await state.clear()
    try:
        await callback.message.edit_text(
            "🔄 <b>Session reset.</b> Return to the main menu:",
            parse_mode=ParseMode.HTML,
            reply_markup=main_menu(),
        )
    except TelegramBadRequest:
        pass
