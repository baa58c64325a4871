"""
Keyboards for the enrollment wizard, one builder per step.
"""
from typing import List

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from portal.enrollment import EnrollmentWizard, Gender, JerseySize, TrainingSession, WizardStep
from portal.enrollment.pricing import format_currency
from portal.keyboards.callbacks import MainMenuCb, WizardCb


def _btn(text: str, action: str, idx: int = 0, value: str = "") -> InlineKeyboardButton:
    return InlineKeyboardButton(
        text=text,
        callback_data=WizardCb(action=action, idx=idx, value=value).pack(),
    )


def _nav_btn(text: str, action: str, step: WizardStep) -> InlineKeyboardButton:
    # next/back carry the step they were drawn for
    return _btn(text, action, value=str(step.value))


def _cancel_btn() -> InlineKeyboardButton:
    return InlineKeyboardButton(text="❌ Cancel", callback_data=MainMenuCb(action="main").pack())


def athlete_step_kb(wizard: EnrollmentWizard) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    idx = wizard.expanded_athlete_index
    athlete = wizard.draft.athletes[idx]

    builder.row(
        _btn("✏️ Name", "edit", idx, "name"),
        _btn("📅 Date of birth", "edit", idx, "dob"),
    )
    builder.row(*[
        _btn(("✅ " if athlete.gender == g else "") + g, "gender", idx, g)
        for g in Gender.ATHLETE_CHOICES
    ])
    builder.row(_btn(f"👕 Jersey: {athlete.jersey_size}", "jersey_menu", idx))
    builder.row(_btn("🏷 Choose program", "program_menu", idx))

    if len(wizard.draft.athletes) > 1:
        builder.row(*[
            _btn(("▶️ " if i == idx else "") + (a.name or f"Athlete {i + 1}"), "athlete", i)
            for i, a in enumerate(wizard.draft.athletes)
        ])
        builder.row(
            _btn("➕ Add sibling", "add"),
            _btn("🗑 Remove", "remove", idx),
        )
    else:
        builder.row(_btn("➕ Add sibling", "add"))

    builder.row(_cancel_btn(), _nav_btn("Next ➡️", "next", WizardStep.ATHLETE_INFO))
    return builder.as_markup()


def jersey_kb(idx: int) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(*[_btn(size, "jersey", idx, size) for size in JerseySize.CHOICES])
    builder.row(_btn("🔙 Back", "view"))
    return builder.as_markup()


def program_kb(idx: int, options: List[TrainingSession], selected_id: str = "") -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    for s in options:
        mark = "✅ " if s.id == selected_id else ""
        builder.row(_btn(f"{mark}{s.label} — {format_currency(s.price)}/mo", "program", idx, s.id))
    builder.row(_btn("🔙 Back", "view"))
    return builder.as_markup()


def parent_step_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(_btn("✏️ Full name", "edit", value="parent_name"))
    builder.row(
        _btn("📧 Email", "edit", value="email"),
        _btn("📞 Phone", "edit", value="phone"),
    )
    builder.row(
        _nav_btn("⬅️ Back", "back", WizardStep.PARENT_INFO),
        _nav_btn("Next ➡️", "next", WizardStep.PARENT_INFO),
    )
    return builder.as_markup()


def waiver_step_kb(agreed: bool) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(_btn(("☑️" if agreed else "⬜️") + " I agree to the waiver", "waiver"))
    builder.row(_btn("✍️ Sign", "edit", value="signature"))
    builder.row(
        _nav_btn("⬅️ Back", "back", WizardStep.WAIVER),
        _nav_btn("Next ➡️", "next", WizardStep.WAIVER),
    )
    return builder.as_markup()


def payment_step_kb(wizard: EnrollmentWizard) -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    if wizard.is_processing:
        builder.row(InlineKeyboardButton(text="⏳ Processing…", callback_data="noop"))
        return builder.as_markup()

    builder.row(_btn("💳 Card number", "edit", value="card_number"))
    builder.row(
        _btn("📆 Expiry", "edit", value="expiry"),
        _btn("🔢 CVC", "edit", value="cvc"),
    )
    builder.row(_btn(f"🔒 Pay {format_currency(wizard.pricing.total_due)}", "pay"))
    builder.row(_nav_btn("⬅️ Back", "back", WizardStep.PAYMENT))
    return builder.as_markup()


def receipt_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(_btn("🏠 Go to dashboard", "dashboard"))
    return builder.as_markup()


def cancel_input_kb() -> InlineKeyboardMarkup:
    builder = InlineKeyboardBuilder()
    builder.row(_btn("🔙 Back", "view"))
    return builder.as_markup()


def step_kb(wizard: EnrollmentWizard) -> InlineKeyboardMarkup:
    step = wizard.current_step
    if step is WizardStep.ATHLETE_INFO:
        return athlete_step_kb(wizard)
    if step is WizardStep.PARENT_INFO:
        return parent_step_kb()
    if step is WizardStep.WAIVER:
        return waiver_step_kb(wizard.draft.waiver_agreed)
    if step is WizardStep.PAYMENT:
        return payment_step_kb(wizard)
    return receipt_kb()
