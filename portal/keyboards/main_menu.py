"""
Main menu keyboards — context-aware (guest vs. linked parent account).
"""
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from portal.keyboards.callbacks import MainMenuCb


def main_menu(has_account: bool = False) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="📝 Enroll an athlete", callback_data=MainMenuCb(action="enroll").pack()),
    )
    if has_account:
        builder.row(
            InlineKeyboardButton(text="👨‍👩‍👧 My family",  callback_data=MainMenuCb(action="family").pack()),
        )
        builder.row(
            InlineKeyboardButton(text="💳 Billing",      callback_data=MainMenuCb(action="billing").pack()),
        )
    return builder.as_markup()


def back_to_main() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="🔙 Main menu", callback_data=MainMenuCb(action="main").pack()))
    return builder.as_markup()
