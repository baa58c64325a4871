"""
Centralized CallbackData factories.
Telegram limits callback_data to 64 bytes — all prefixes are kept short.
"""
from aiogram.filters.callback_data import CallbackData


class MainMenuCb(CallbackData, prefix="mm"):
    action: str           # main | enroll | family | billing


class WizardCb(CallbackData, prefix="wz"):
    action: str           # view | athlete | edit | gender | jersey_menu | jersey | program_menu
                          # | program | add | remove | waiver | next | back | pay | dashboard
    idx: int = 0          # athlete index
    value: str = ""       # field name / gender / size / program id
