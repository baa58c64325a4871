"""
Enrollment wizard conversation.

Flow:
  "Enroll" → Athlete Info → Parent Info → Waiver → Payment → Receipt → dashboard

All business rules live in ``portal.enrollment``; these handlers only translate
buttons and typed text into wizard operations and re-render the current step.
The wizard itself is owned by the dispatcher's WizardRegistry (``wizards``).
"""
import logging
from typing import List, Optional, Tuple

from aiogram import Bot, F, Router
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.utils.markdown import hbold, hcode, hitalic
from aiogram.utils.text_decorations import html_decoration as html
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import settings
from portal.enrollment import (
    EnrollmentWizard,
    SubmitResult,
    WizardRegistry,
    WizardStep,
    compute_age,
)
from portal.enrollment.pricing import format_currency
from portal.enrollment.wizard import FIELD_STEPS, athlete_key
from portal.keyboards import (
    MainMenuCb,
    WizardCb,
    cancel_input_kb,
    jersey_kb,
    main_menu,
    program_kb,
    step_kb,
)
from portal.services import (
    DatabaseEnrollmentGateway,
    enrollment_success_text,
    establish_account,
    format_receipt,
    load_catalog,
    notify_enrollment_confirmed,
)
from portal.states import EnrollmentStates
from portal.validators import parse_dob

logger = logging.getLogger(__name__)
router = Router(name="enrollment")

EXPIRED_TEXT = "⚠️ This enrollment has expired. Please start again."
STALE_TEXT   = "⚠️ That button belongs to an earlier screen. Here is where you are now."

WAIVER_TEXT = (
    "I acknowledge that participation in athletic training involves risk of injury. "
    "I release the academy, its coaches and staff from liability for injuries sustained "
    "during sessions, and consent to emergency medical treatment for my child if needed."
)

# edit value → (FSM state, prompt)
_PROMPTS = {
    "name":        (EnrollmentStates.athlete_name,
                    f"Type the athlete's {hbold('full name')} (e.g. {hitalic('Jordan Smith')}):"),
    "dob":         (EnrollmentStates.athlete_dob,
                    f"Type the {hbold('date of birth')} as {hcode('YYYY-MM-DD')} or {hcode('DD.MM.YYYY')}:"),
    "parent_name": (EnrollmentStates.parent_name,  f"Type your {hbold('full legal name')}:"),
    "email":       (EnrollmentStates.email,
                    f"Type your {hbold('email address')}. Login details are sent there:"),
    "phone":       (EnrollmentStates.phone,        f"Type your {hbold('phone number')} (10 digits):"),
    "signature":   (EnrollmentStates.signature,
                    f"Type your full name exactly as entered before to {hbold('sign')} the waiver:"),
    "card_number": (EnrollmentStates.card_number,  f"Type the {hbold('card number')} (16 digits):"),
    "expiry":      (EnrollmentStates.expiry,       f"Type the card {hbold('expiry')} as {hcode('MM/YY')}:"),
    "cvc":         (EnrollmentStates.cvc,          f"Type the {hbold('CVC')} (3–4 digits):"),
}

# FSM state → wizard field key for top-level fields
_STATE_FIELDS = {
    EnrollmentStates.parent_name.state: "parent_name",
    EnrollmentStates.email.state:       "email",
    EnrollmentStates.phone.state:       "phone",
    EnrollmentStates.signature.state:   "waiver_signature",
    EnrollmentStates.card_number.state: "card_number",
    EnrollmentStates.expiry.state:      "expiry",
    EnrollmentStates.cvc.state:         "cvc",
}

# Buttons are only honoured on the step that drew them
_ACTION_STEPS = {
    "athlete":      WizardStep.ATHLETE_INFO,
    "add":          WizardStep.ATHLETE_INFO,
    "remove":       WizardStep.ATHLETE_INFO,
    "gender":       WizardStep.ATHLETE_INFO,
    "jersey_menu":  WizardStep.ATHLETE_INFO,
    "jersey":       WizardStep.ATHLETE_INFO,
    "program_menu": WizardStep.ATHLETE_INFO,
    "program":      WizardStep.ATHLETE_INFO,
    "waiver":       WizardStep.WAIVER,
    "pay":          WizardStep.PAYMENT,
    "dashboard":    WizardStep.RECEIPT,
}

_EDIT_STEPS = {
    "name":        WizardStep.ATHLETE_INFO,
    "dob":         WizardStep.ATHLETE_INFO,
    "parent_name": WizardStep.PARENT_INFO,
    "email":       WizardStep.PARENT_INFO,
    "phone":       WizardStep.PARENT_INFO,
    "signature":   WizardStep.WAIVER,
    "card_number": WizardStep.PAYMENT,
    "expiry":      WizardStep.PAYMENT,
    "cvc":         WizardStep.PAYMENT,
}

# Actions whose ``idx`` points at an athlete
_INDEXED_ACTIONS = {"athlete", "remove", "gender", "jersey_menu", "jersey", "program_menu", "program"}


def callback_step(data: WizardCb) -> Optional[WizardStep]:
    """The step a wizard button was drawn for, or None for step-independent buttons."""
    if data.action == "edit":
        return _EDIT_STEPS.get(data.value)
    if data.action in ("next", "back"):
        return WizardStep(int(data.value)) if data.value.isdigit() else None
    return _ACTION_STEPS.get(data.action)


def is_stale(wizard: EnrollmentWizard, data: WizardCb) -> bool:
    """True when the button no longer matches the wizard's step or its athletes."""
    step = callback_step(data)
    if data.action in ("next", "back") and step is None:
        return True
    if step is not None and step is not wizard.current_step:
        return True
    indexed = data.action in _INDEXED_ACTIONS or (data.action == "edit" and data.value in ("name", "dob"))
    return indexed and wizard.athlete_at(data.idx) is None


# ── Rendering ─────────────────────────────────────────────────────────────────
# Everything typed by a parent goes through html.quote before it is rendered.

def _q(value: Optional[str], placeholder: str = "—") -> str:
    return html.quote(value) if value else placeholder


def _err(wizard: EnrollmentWizard, key: str) -> str:
    msg = wizard.error_for(key)
    return f"\n    ⚠️ {hitalic(msg)}" if msg else ""


def _pricing_lines(wizard: EnrollmentWizard) -> List[str]:
    p = wizard.pricing
    lines = [f"💰 Monthly subtotal: {hcode(format_currency(p.subtotal))}"]
    if p.has_discount:
        lines.append(f"🎁 Sibling discount: {hcode('-' + format_currency(p.sibling_discount))}")
    lines += [
        f"🔁 Monthly total: {hcode(format_currency(p.monthly_total))}",
        f"🧾 Registration fees: {hcode(format_currency(p.registration_fees))}",
        f"💳 {hbold('Due today: ' + format_currency(p.total_due))}",
    ]
    return lines


def _render_athletes(wizard: EnrollmentWizard) -> str:
    lines = [hbold(f"Step 1/4 — {WizardStep.ATHLETE_INFO.title}") + "\n"]
    for i, a in enumerate(wizard.draft.athletes):
        session = wizard.selected_session(i)
        marker = "▶️" if i == wizard.expanded_athlete_index else f"{i + 1}."
        status = f"✅ {html.quote(session.level)}" if session else "no program yet"
        lines.append(f"{marker} {_q(a.name, f'Athlete {i + 1}')} — {status}")

    idx = wizard.expanded_athlete_index
    a = wizard.draft.athletes[idx]
    dob = f"{a.dob:%d.%m.%Y}" if a.dob else "—"
    if a.dob and a.dob <= wizard.today:
        dob += f" (age {compute_age(a.dob, wizard.today)})"
    session = wizard.selected_session(idx)
    lines += [
        "",
        f"👤 Name: {_q(a.name)}{_err(wizard, athlete_key(idx, 'name'))}",
        f"📅 Born: {dob}{_err(wizard, athlete_key(idx, 'dob'))}",
        f"🚻 Gender: {a.gender}   👕 Jersey: {a.jersey_size}",
        f"🏷 Program: {_q(session.label if session else '')}",
    ]
    if a.dob and not wizard.eligible_sessions(idx):
        lines.append("ℹ️ " + hitalic("No programs available for this age/gender."))
    lines += [""] + _pricing_lines(wizard)
    return "\n".join(lines)


def _render_parent(wizard: EnrollmentWizard) -> str:
    d = wizard.draft
    return "\n".join([
        hbold(f"Step 2/4 — {WizardStep.PARENT_INFO.title}") + "\n",
        "We'll create a parent account for you using this email.\n",
        f"👤 Name: {_q(d.parent_name)}{_err(wizard, 'parent_name')}",
        f"📧 Email: {_q(d.email)}{_err(wizard, 'email')}",
        f"📞 Phone: {_q(d.phone)}{_err(wizard, 'phone')}",
    ])


def _render_waiver(wizard: EnrollmentWizard) -> str:
    d = wizard.draft
    return "\n".join([
        hbold(f"Step 3/4 — {WizardStep.WAIVER.title}") + "\n",
        hitalic(WAIVER_TEXT) + "\n",
        f"{'☑️' if d.waiver_agreed else '⬜️'} Agreed",
        f"✍️ Signature: {_q(d.waiver_signature)}{_err(wizard, 'waiver_signature')}",
        f"   (must match: {_q(d.parent_name)})",
    ])


def _render_payment(wizard: EnrollmentWizard) -> str:
    d = wizard.draft
    lines = [hbold(f"Step 4/4 — {WizardStep.PAYMENT.title}") + "\n"]
    for i, a in enumerate(d.athletes):
        session = wizard.selected_session(i)
        price = format_currency(session.price) if session else "—"
        label = session.label if session else "Program"
        lines.append(f"• {_q(a.name)} — {html.quote(label)} ({price}/mo)")
    lines += [""] + _pricing_lines(wizard) + [
        "",
        f"💳 Card: {_q(d.card_number)}{_err(wizard, 'card_number')}",
        f"📆 Expiry: {_q(d.expiry)}{_err(wizard, 'expiry')}",
        f"🔢 CVC: {'•' * len(d.cvc) if d.cvc else '—'}{_err(wizard, 'cvc')}",
    ]
    if wizard.is_processing:
        lines.append("\n⏳ " + hitalic("Processing payment…"))
    elif wizard.submission_error:
        lines.append("\n❌ " + hbold(wizard.submission_error))
    return "\n".join(lines)


def _render_receipt(wizard: EnrollmentWizard) -> str:
    receipt = wizard.receipt
    return (
        f"🎉 {hbold('Welcome to the academy!')}\n"
        f"{enrollment_success_text(bool(wizard.is_new_account))}\n\n"
        f"{format_receipt(receipt)}"
    )


_RENDERERS = {
    WizardStep.ATHLETE_INFO: _render_athletes,
    WizardStep.PARENT_INFO:  _render_parent,
    WizardStep.WAIVER:       _render_waiver,
    WizardStep.PAYMENT:      _render_payment,
    WizardStep.RECEIPT:      _render_receipt,
}


def render(wizard: EnrollmentWizard) -> Tuple[str, InlineKeyboardMarkup]:
    return _RENDERERS[wizard.current_step](wizard), step_kb(wizard)


async def _show(callback: CallbackQuery, wizard: EnrollmentWizard) -> None:
    text, kb = render(wizard)
    try:
        await callback.message.edit_text(text, parse_mode=ParseMode.HTML, reply_markup=kb)
    except TelegramBadRequest as e:
        if "message is not modified" in str(e):
            return
        logger.warning("Could not render %s step: %s", wizard.current_step.name, e)
        await callback.message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)


async def _wizard_or_expire(
    callback: CallbackQuery,
    wizards: WizardRegistry,
    callback_data: Optional[WizardCb] = None,
) -> Optional[EnrollmentWizard]:
    wizard = wizards.get(callback.from_user.id)
    if wizard is None:
        await callback.answer(EXPIRED_TEXT, show_alert=True)
        return None
    if callback_data is not None and is_stale(wizard, callback_data):
        logger.debug(
            "Ignoring stale %s button on %s for telegram_id=%d",
            callback_data.action, wizard.current_step.name, callback.from_user.id,
        )
        await callback.answer(STALE_TEXT, show_alert=True)
        await _show(callback, wizard)
        return None
    return wizard


def _first_error(wizard: EnrollmentWizard) -> str:
    for msg in wizard.step_errors(wizard.current_step).values():
        return msg
    return ""


# ── Entry ─────────────────────────────────────────────────────────────────────

@router.callback_query(MainMenuCb.filter(F.action == "enroll"))
async def cq_start_enrollment(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardRegistry,
) -> None:
    catalog = await load_catalog(session)
    if not catalog:
        await callback.answer("No programs are open for enrollment right now.", show_alert=True)
        return

    await state.clear()
    wizard = wizards.start(callback.from_user.id, catalog)
    logger.info("Enrollment started by telegram_id=%d", callback.from_user.id)
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "view"))
async def cq_view(callback: CallbackQuery, state: FSMContext, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards)
    if wizard is None:
        return
    await state.set_state(None)
    await _show(callback, wizard)
    await callback.answer()


# ── Step 1: athletes ──────────────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "athlete"))
async def cq_focus_athlete(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    wizard.expand_athlete(callback_data.idx)
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "add"))
async def cq_add_athlete(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    wizard.add_athlete()
    await _show(callback, wizard)
    await callback.answer("➕ Sibling added — 10% family discount applies")


@router.callback_query(WizardCb.filter(F.action == "remove"))
async def cq_remove_athlete(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if not wizard.remove_athlete(callback_data.idx):
        await callback.answer("At least one athlete is required.", show_alert=True)
        return
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "gender"))
async def cq_gender(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    wizard.update_athlete(callback_data.idx, "gender", callback_data.value)
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "jersey_menu"))
async def cq_jersey_menu(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    await callback.message.edit_reply_markup(reply_markup=jersey_kb(callback_data.idx))
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "jersey"))
async def cq_jersey(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    wizard.update_athlete(callback_data.idx, "jersey_size", callback_data.value)
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "program_menu"))
async def cq_program_menu(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    idx = callback_data.idx
    athlete = wizard.athlete_at(idx)
    if not athlete.dob:
        await callback.answer("Enter the date of birth first.", show_alert=True)
        return
    options = wizard.eligible_sessions(idx)
    if not options:
        await callback.answer("No programs available for this age/gender.", show_alert=True)
        return
    await callback.message.edit_reply_markup(
        reply_markup=program_kb(idx, options, athlete.selected_session_id or "")
    )
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "program"))
async def cq_program(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if not wizard.select_session(callback_data.idx, callback_data.value):
        await callback.answer("This program is not available for this athlete.", show_alert=True)
        return
    await _show(callback, wizard)
    await callback.answer()


# ── Text input (all steps) ────────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "edit"))
async def cq_edit_field(
    callback: CallbackQuery,
    callback_data: WizardCb,
    state: FSMContext,
    wizards: WizardRegistry,
) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    field_state, prompt = _PROMPTS[callback_data.value]
    await state.set_state(field_state)
    await state.update_data(athlete_idx=callback_data.idx)
    await callback.message.edit_text(prompt, parse_mode=ParseMode.HTML, reply_markup=cancel_input_kb())
    await callback.answer()


async def _answer_with_step(message: Message, wizard: EnrollmentWizard, notice: str = "") -> None:
    text, kb = render(wizard)
    if notice:
        text = f"{html.quote(notice)}\n\n{text}"
    try:
        await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=kb)
    except TelegramBadRequest as e:
        logger.warning("Could not render %s step: %s", wizard.current_step.name, e)
        await message.answer(notice or STALE_TEXT, parse_mode=None, reply_markup=kb)


async def _wizard_for_input(
    message: Message,
    state: FSMContext,
    wizards: WizardRegistry,
    step: WizardStep,
) -> Optional[EnrollmentWizard]:
    """The wizard a typed answer belongs to, or None when it no longer accepts it."""
    wizard = wizards.get(message.from_user.id)
    if wizard is None:
        await state.clear()
        await message.answer(EXPIRED_TEXT, reply_markup=main_menu())
        return None
    if wizard.is_processing:
        await message.answer("⏳ Your payment is being processed, please wait.")
        return None
    if wizard.current_step is not step:
        await state.set_state(None)
        await _answer_with_step(message, wizard, STALE_TEXT)
        return None
    return wizard


async def _athlete_index(message: Message, state: FSMContext, wizard: EnrollmentWizard) -> Optional[int]:
    idx = (await state.get_data()).get("athlete_idx", 0)
    if wizard.athlete_at(idx) is None:
        await state.set_state(None)
        await _answer_with_step(message, wizard, STALE_TEXT)
        return None
    return idx


@router.message(EnrollmentStates.athlete_name)
async def msg_athlete_name(message: Message, state: FSMContext, wizards: WizardRegistry) -> None:
    wizard = await _wizard_for_input(message, state, wizards, WizardStep.ATHLETE_INFO)
    if wizard is None:
        return
    idx = await _athlete_index(message, state, wizard)
    if idx is None:
        return
    wizard.update_athlete(idx, "name", (message.text or "").strip())
    error = wizard.touch(athlete_key(idx, "name"))
    await state.set_state(None)
    await _answer_with_step(message, wizard, f"⚠️ {error}" if error else "")


@router.message(EnrollmentStates.athlete_dob)
async def msg_athlete_dob(message: Message, state: FSMContext, wizards: WizardRegistry) -> None:
    wizard = await _wizard_for_input(message, state, wizards, WizardStep.ATHLETE_INFO)
    if wizard is None:
        return
    idx = await _athlete_index(message, state, wizard)
    if idx is None:
        return
    try:
        dob = parse_dob(message.text or "")
    except ValueError:
        await message.answer(
            f"⚠️ Please enter the date as {hcode('YYYY-MM-DD')} or {hcode('DD.MM.YYYY')}:",
            parse_mode=ParseMode.HTML,
            reply_markup=cancel_input_kb(),
        )
        return

    wizard.update_athlete(idx, "dob", dob)
    error = wizard.touch(athlete_key(idx, "dob"))
    await state.set_state(None)
    await _answer_with_step(message, wizard, f"⚠️ {error}" if error else "")


@router.message(F.text, EnrollmentStates.parent_name)
@router.message(F.text, EnrollmentStates.email)
@router.message(F.text, EnrollmentStates.phone)
@router.message(F.text, EnrollmentStates.signature)
@router.message(F.text, EnrollmentStates.card_number)
@router.message(F.text, EnrollmentStates.expiry)
@router.message(F.text, EnrollmentStates.cvc)
async def msg_wizard_field(message: Message, state: FSMContext, wizards: WizardRegistry) -> None:
    field = _STATE_FIELDS[await state.get_state()]
    wizard = await _wizard_for_input(message, state, wizards, FIELD_STEPS[field])
    if wizard is None:
        return

    raw = message.text if field == "waiver_signature" else message.text.strip()
    wizard.update_field(field, raw)
    error = wizard.touch(field)
    await state.set_state(None)

    # Card data should not linger in the chat history
    if field in ("card_number", "expiry", "cvc"):
        try:
            await message.delete()
        except TelegramBadRequest:
            pass

    await _answer_with_step(message, wizard, f"⚠️ {error}" if error else "")


# ── Steps 2–3: waiver toggle ──────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "waiver"))
async def cq_waiver(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    wizard.set_waiver_agreed(not wizard.draft.waiver_agreed)
    await _show(callback, wizard)
    await callback.answer()


# ── Navigation ────────────────────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "next"))
async def cq_next(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if not wizard.advance():
        hint = _first_error(wizard)
        if not hint and wizard.current_step is WizardStep.ATHLETE_INFO:
            hint = "Choose a program for every athlete."
        elif not hint and wizard.current_step is WizardStep.WAIVER:
            hint = "Agree to the waiver and sign with your full name."
        await _show(callback, wizard)
        await callback.answer(hint or "Please complete this step.", show_alert=True)
        return
    await _show(callback, wizard)
    await callback.answer()


@router.callback_query(WizardCb.filter(F.action == "back"))
async def cq_back(callback: CallbackQuery, callback_data: WizardCb, wizards: WizardRegistry) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if wizard.back():
        await _show(callback, wizard)
    await callback.answer()


# ── Step 4: pay ───────────────────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "pay"))
async def cq_pay(
    callback: CallbackQuery,
    callback_data: WizardCb,
    session: AsyncSession,
    bot: Bot,
    wizards: WizardRegistry,
) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if wizard.is_processing:
        await callback.answer()
        return

    await callback.answer()
    gateway = DatabaseEnrollmentGateway(session, settings.pricing)
    result = await wizard.submit(gateway)

    if result is SubmitResult.FAILED:
        # Nothing from a rejected attempt may reach the commit
        await session.rollback()
    elif result is SubmitResult.SUCCEEDED:
        await session.commit()
        await notify_enrollment_confirmed(bot, callback.message.chat.id, wizard.receipt)

    await _show(callback, wizard)


# ── Step 5: hand-off ──────────────────────────────────────────────────────────

@router.callback_query(WizardCb.filter(F.action == "dashboard"))
async def cq_dashboard(
    callback: CallbackQuery,
    callback_data: WizardCb,
    session: AsyncSession,
    state: FSMContext,
    wizards: WizardRegistry,
) -> None:
    wizard = await _wizard_or_expire(callback, wizards, callback_data)
    if wizard is None:
        return
    if wizard.receipt is None:
        await callback.answer()
        return

    account = await establish_account(session, callback.from_user.id, wizard.receipt)
    wizards.discard(callback.from_user.id)
    await state.clear()

    sub = account.subscription
    await callback.message.edit_text(
        f"👋 Welcome, {hbold(account.name)}!\n\n"
        f"👨‍👩‍👧 Athletes: {html.quote(', '.join(account.athletes))}\n"
        f"🏷 Programs: {html.quote(sub.program)}\n"
        f"🔁 {format_currency(sub.amount)}/mo · {sub.status} · next {sub.next_payment:%b %d, %Y}",
        parse_mode=ParseMode.HTML,
        reply_markup=main_menu(has_account=account.user_id is not None),
    )
    await callback.answer()
