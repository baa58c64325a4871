from portal.keyboards.callbacks import MainMenuCb, WizardCb
from portal.keyboards.main_menu import main_menu, back_to_main
from portal.keyboards.enrollment_kb import (
    athlete_step_kb,
    jersey_kb,
    program_kb,
    parent_step_kb,
    waiver_step_kb,
    payment_step_kb,
    receipt_kb,
    cancel_input_kb,
    step_kb,
)

__all__ = [
    # callbacks
    "MainMenuCb", "WizardCb",
    # main menu
    "main_menu", "back_to_main",
    # enrollment
    "athlete_step_kb", "jersey_kb", "program_kb", "parent_step_kb",
    "waiver_step_kb", "payment_step_kb", "receipt_kb", "cancel_input_kb", "step_kb",
]
