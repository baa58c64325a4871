"""
Enrollment wizard — an explicit finite-state machine over the draft.

Flow:
  ATHLETE_INFO → PARENT_INFO → WAIVER → PAYMENT → RECEIPT (terminal)

Forward moves happen only when the current step's gate holds; PAYMENT leaves
only through a successful submission. BACK is available from PARENT_INFO,
WAIVER and PAYMENT. There are no jumps between non-adjacent steps.

Validation state is just the set of touched field keys. Error messages are
derived from the draft on every read, so they can never go stale.
"""
from __future__ import annotations

import enum
import logging
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from portal.enrollment.eligibility import is_eligible, resolve_eligible_sessions
from portal.enrollment.models import (
    AthleteDraft,
    EnrollmentDraft,
    Gender,
    JerseySize,
    TrainingSession,
    find_session,
)
from portal.enrollment.pricing import PricingConfig, PricingSnapshot, compute_pricing
from portal.enrollment.receipt import ConfirmedEnrollment, assemble_receipt
from portal.enrollment.submission import (
    PAYMENT_FIELDS,
    EnrollmentGateway,
    SubmissionGuard,
    SubmissionStatus,
    SubmitResult,
)
from portal.validators import (
    PHONE_FORMATTED_LENGTH,
    format_card,
    format_cvc,
    format_expiry,
    format_phone,
    is_valid_email,
    parse_dob,
    signature_matches,
    validate_athlete_name,
    validate_card_number,
    validate_cvc,
    validate_dob,
    validate_email,
    validate_expiry,
    validate_parent_name,
    validate_phone,
    validate_signature,
)

logger = logging.getLogger(__name__)


class WizardStep(enum.IntEnum):
    ATHLETE_INFO = 1
    PARENT_INFO  = 2
    WAIVER       = 3
    PAYMENT      = 4
    RECEIPT      = 5

    @property
    def title(self) -> str:
        return STEP_TITLES[self]


STEP_TITLES = {
    WizardStep.ATHLETE_INFO: "Athlete Info",
    WizardStep.PARENT_INFO:  "Parent Info",
    WizardStep.WAIVER:       "Waiver",
    WizardStep.PAYMENT:      "Payment",
    WizardStep.RECEIPT:      "Receipt",
}


class WizardEvent(enum.Enum):
    NEXT      = "next"
    BACK      = "back"
    SUBMITTED = "submitted"


TRANSITIONS: Dict[Tuple[WizardStep, WizardEvent], WizardStep] = {
    (WizardStep.ATHLETE_INFO, WizardEvent.NEXT):      WizardStep.PARENT_INFO,
    (WizardStep.PARENT_INFO,  WizardEvent.NEXT):      WizardStep.WAIVER,
    (WizardStep.WAIVER,       WizardEvent.NEXT):      WizardStep.PAYMENT,
    (WizardStep.PAYMENT,      WizardEvent.SUBMITTED): WizardStep.RECEIPT,
    (WizardStep.PARENT_INFO,  WizardEvent.BACK):      WizardStep.ATHLETE_INFO,
    (WizardStep.WAIVER,       WizardEvent.BACK):      WizardStep.PARENT_INFO,
    (WizardStep.PAYMENT,      WizardEvent.BACK):      WizardStep.WAIVER,
}

VALIDATED_ATHLETE_FIELDS = ("name", "dob")

STEP_FIELDS: Dict[WizardStep, Tuple[str, ...]] = {
    WizardStep.PARENT_INFO: ("parent_name", "email", "phone"),
    WizardStep.WAIVER:      ("waiver_signature",),
    WizardStep.PAYMENT:     PAYMENT_FIELDS,
}

_FORMATTERS: Dict[str, Callable[[str], str]] = {
    "phone":       format_phone,
    "card_number": format_card,
    "expiry":      format_expiry,
    "cvc":         format_cvc,
}

EDITABLE_FIELDS = ("parent_name", "email", "phone", "waiver_signature") + PAYMENT_FIELDS

# Each editable field belongs to exactly one step and is only writable there
FIELD_STEPS: Dict[str, WizardStep] = {
    field: step for step, fields in STEP_FIELDS.items() for field in fields
}


# ── Errors ────────────────────────────────────────────────────────────────────

class WizardError(Exception):
    """Misuse of the wizard API (not a user input problem)."""


class InvalidTransition(WizardError):
    def __init__(self, step: WizardStep, event: WizardEvent) -> None:
        super().__init__(f"No transition from {step.name} on {event.name}")
        self.step = step
        self.event = event


class WizardLocked(WizardError):
    """The requested change is not allowed in the current step / state."""


def athlete_key(index: int, field: str) -> str:
    return f"athletes.{index}.{field}"


def _parse_athlete_key(key: str) -> Optional[Tuple[int, str]]:
    parts = key.split(".")
    if len(parts) == 3 and parts[0] == "athletes" and parts[1].isdigit():
        return int(parts[1]), parts[2]
    return None


# ── Wizard ────────────────────────────────────────────────────────────────────

class EnrollmentWizard:
    """
    One parent's enrollment in progress.

    Parameters
    ----------
    sessions : catalog snapshot, treated as immutable for the wizard's lifetime
    pricing  : pricing constants shared with every price display
    clock    : returns "today"; injectable for deterministic ages in tests
    """

    def __init__(
        self,
        sessions: Sequence[TrainingSession],
        pricing: PricingConfig = PricingConfig(),
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.sessions: Tuple[TrainingSession, ...] = tuple(sessions)
        self.pricing_config = pricing
        self._clock = clock
        self.draft = EnrollmentDraft()
        self.current_step = WizardStep.ATHLETE_INFO
        self.expanded_athlete_index = 0
        self._touched: Set[str] = set()
        self._guard = SubmissionGuard()
        self._receipt: Optional[ConfirmedEnrollment] = None

    # ── Derived state ─────────────────────────────────────────────────────────

    @property
    def today(self) -> date:
        return self._clock()

    @property
    def pricing(self) -> PricingSnapshot:
        return compute_pricing(self.draft.athletes, self.sessions, self.pricing_config)

    @property
    def is_processing(self) -> bool:
        return self._guard.is_processing

    @property
    def submission_status(self) -> SubmissionStatus:
        return self._guard.status

    @property
    def submission_error(self) -> str:
        return self._guard.error

    @property
    def is_new_account(self) -> Optional[bool]:
        response = self._guard.response
        return response.is_new_account if response else None

    @property
    def receipt(self) -> Optional[ConfirmedEnrollment]:
        return self._receipt

    @property
    def is_complete(self) -> bool:
        return self.current_step is WizardStep.RECEIPT

    @property
    def touched(self) -> Set[str]:
        return set(self._touched)

    @property
    def errors(self) -> Dict[str, str]:
        """field key → message ("" when the touched field is fine)."""
        return {key: self._validate(key) for key in sorted(self._touched)}

    def error_for(self, key: str) -> str:
        if key not in self._touched:
            return ""
        return self._validate(key)

    def athlete_at(self, index: int) -> Optional[AthleteDraft]:
        """The athlete at ``index``, or None when the index is out of range."""
        if 0 <= index < len(self.draft.athletes):
            return self.draft.athletes[index]
        return None

    def eligible_sessions(self, index: int) -> List[TrainingSession]:
        athlete = self._athlete(index)
        return resolve_eligible_sessions(self.sessions, athlete.dob, athlete.gender, self.today)

    def selected_session(self, index: int) -> Optional[TrainingSession]:
        return find_session(list(self.sessions), self._athlete(index).selected_session_id)

    # ── Athlete step ──────────────────────────────────────────────────────────

    def add_athlete(self) -> int:
        self._ensure_step(WizardStep.ATHLETE_INFO)
        self.draft.athletes.append(AthleteDraft())
        self.expanded_athlete_index = len(self.draft.athletes) - 1
        return self.expanded_athlete_index

    def remove_athlete(self, index: int) -> bool:
        self._ensure_step(WizardStep.ATHLETE_INFO)
        self._athlete(index)
        if len(self.draft.athletes) <= 1:
            return False

        del self.draft.athletes[index]

        retouched = set()
        for key in self._touched:
            parsed = _parse_athlete_key(key)
            if parsed is None:
                retouched.add(key)
                continue
            i, field = parsed
            if i < index:
                retouched.add(key)
            elif i > index:
                retouched.add(athlete_key(i - 1, field))
        self._touched = retouched

        focus = self.expanded_athlete_index
        if focus > index:
            focus -= 1
        elif focus == index:
            focus = max(0, index - 1)
        self.expanded_athlete_index = min(focus, len(self.draft.athletes) - 1)
        return True

    def expand_athlete(self, index: int) -> None:
        self._athlete(index)
        self.expanded_athlete_index = index

    def update_athlete(self, index: int, field: str, value) -> None:
        """
        Set one athlete attribute. Any change of date of birth or gender drops
        the program selection, which may no longer be eligible.
        """
        self._ensure_step(WizardStep.ATHLETE_INFO)
        athlete = self._athlete(index)

        if field == "name":
            athlete.name = value or ""
        elif field == "dob":
            if isinstance(value, str):
                value = parse_dob(value)
            athlete.dob = value
            athlete.selected_session_id = None
        elif field == "gender":
            if value not in Gender.ATHLETE_CHOICES:
                raise ValueError(f"Unsupported athlete gender: {value!r}")
            athlete.gender = value
            athlete.selected_session_id = None
        elif field == "jersey_size":
            if value not in JerseySize.CHOICES:
                raise ValueError(f"Unsupported jersey size: {value!r}")
            athlete.jersey_size = value
        else:
            raise ValueError(f"Unknown athlete field: {field!r}")

    def select_session(self, index: int, session_id: Optional[str]) -> bool:
        """Pick a program; refused (False) when it is unknown or not eligible."""
        self._ensure_step(WizardStep.ATHLETE_INFO)
        athlete = self._athlete(index)
        if session_id is None:
            athlete.selected_session_id = None
            return True

        session = find_session(list(self.sessions), session_id)
        if session is None or not is_eligible(session, athlete.dob, athlete.gender, self.today):
            return False
        athlete.selected_session_id = session.id
        return True

    # ── Parent / waiver / payment fields ──────────────────────────────────────

    def update_field(self, field: str, raw: str) -> str:
        """Store a (formatted) value and return what was stored."""
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown field: {field!r}")
        self._ensure_step(FIELD_STEPS[field])
        formatter = _FORMATTERS.get(field)
        value = formatter(raw) if formatter else (raw or "")
        setattr(self.draft, field, value)
        return value

    def set_waiver_agreed(self, agreed: bool) -> None:
        self._ensure_step(WizardStep.WAIVER)
        self.draft.waiver_agreed = bool(agreed)

    # ── Validation ────────────────────────────────────────────────────────────

    def touch(self, key: str) -> str:
        """Blur: start reporting errors for ``key``. Returns its current message."""
        self._touched.add(key)
        return self._validate(key)

    def touch_step(self, step: WizardStep) -> None:
        for key in self._step_keys(step):
            self._touched.add(key)

    def step_errors(self, step: WizardStep) -> Dict[str, str]:
        errors = {}
        for key in self._step_keys(step):
            message = self._validate(key)
            if message:
                errors[key] = message
        return errors

    def can_advance(self) -> bool:
        gate = _GATES.get(self.current_step)
        return gate is not None and gate(self)

    # ── Navigation ────────────────────────────────────────────────────────────

    def advance(self) -> bool:
        if self.current_step not in _GATES:
            return False
        self.touch_step(self.current_step)
        if not self.can_advance():
            return False
        self._fire(WizardEvent.NEXT)
        return True

    def back(self) -> bool:
        if (self.current_step, WizardEvent.BACK) not in TRANSITIONS or self.is_processing:
            return False
        self._fire(WizardEvent.BACK)
        return True

    async def submit(self, gateway: EnrollmentGateway) -> SubmitResult:
        # Duplicate clicks while in flight or after success are no-ops
        if self.current_step is WizardStep.RECEIPT:
            return SubmitResult.IGNORED
        if self._guard.status in (SubmissionStatus.SUBMITTING, SubmissionStatus.DONE):
            return SubmitResult.IGNORED
        self._ensure_step(WizardStep.PAYMENT)

        # Earlier steps must still hold at submit time
        for step in (WizardStep.ATHLETE_INFO, WizardStep.PARENT_INFO, WizardStep.WAIVER):
            if not _GATES[step](self):
                self.touch_step(step)
                logger.warning("Submit refused: %s step is no longer complete", step.title)
                return SubmitResult.INVALID

        self.touch_step(WizardStep.PAYMENT)
        result = await self._guard.submit(self.draft, gateway)
        if result is SubmitResult.SUCCEEDED:
            submitted_on = self.today
            self._receipt = assemble_receipt(
                self.draft,
                self.sessions,
                self.pricing,
                submitted_on=submitted_on,
                is_new_account=bool(self.is_new_account),
                billing_period_days=self.pricing_config.billing_period_days,
            )
            self._fire(WizardEvent.SUBMITTED)
            logger.info("Enrollment completed for %s (%d athletes)", self.draft.email, len(self.draft.athletes))
        return result

    # ── Internals ─────────────────────────────────────────────────────────────

    def _fire(self, event: WizardEvent) -> WizardStep:
        target = TRANSITIONS.get((self.current_step, event))
        if target is None:
            raise InvalidTransition(self.current_step, event)
        logger.debug("Wizard %s --%s--> %s", self.current_step.name, event.name, target.name)
        self.current_step = target
        return target

    def _athlete(self, index: int) -> AthleteDraft:
        if not 0 <= index < len(self.draft.athletes):
            raise IndexError(f"No athlete at index {index}")
        return self.draft.athletes[index]

    def _ensure_mutable(self) -> None:
        if self.current_step is WizardStep.RECEIPT:
            raise WizardLocked("Enrollment is complete; the draft is read-only")
        if self.is_processing:
            raise WizardLocked("Submission in progress")

    def _ensure_step(self, step: WizardStep) -> None:
        self._ensure_mutable()
        if self.current_step is not step:
            raise WizardLocked(f"Only allowed on the {step.title} step")

    def _step_keys(self, step: WizardStep) -> List[str]:
        if step is WizardStep.ATHLETE_INFO:
            return [
                athlete_key(i, f)
                for i in range(len(self.draft.athletes))
                for f in VALIDATED_ATHLETE_FIELDS
            ]
        return list(STEP_FIELDS.get(step, ()))

    def _validate(self, key: str) -> str:
        parsed = _parse_athlete_key(key)
        if parsed is not None:
            index, field = parsed
            if index >= len(self.draft.athletes):
                return ""
            athlete = self.draft.athletes[index]
            if field == "name":
                return validate_athlete_name(athlete.name)
            if field == "dob":
                return validate_dob(athlete.dob, self.today)
            return ""

        d = self.draft
        if key == "parent_name":
            return validate_parent_name(d.parent_name)
        if key == "email":
            return validate_email(d.email)
        if key == "phone":
            return validate_phone(d.phone)
        if key == "waiver_signature":
            return validate_signature(d.waiver_signature, d.parent_name)
        if key == "card_number":
            return validate_card_number(d.card_number)
        if key == "expiry":
            return validate_expiry(d.expiry)
        if key == "cvc":
            return validate_cvc(d.cvc)
        return ""


# ── Step gates ────────────────────────────────────────────────────────────────

def _athletes_ready(w: EnrollmentWizard) -> bool:
    for athlete in w.draft.athletes:
        if not athlete.name.strip() or not athlete.dob or not athlete.selected_session_id:
            return False
        session = find_session(list(w.sessions), athlete.selected_session_id)
        if session is None or not is_eligible(session, athlete.dob, athlete.gender, w.today):
            return False
    return not w.step_errors(WizardStep.ATHLETE_INFO)


def _parent_ready(w: EnrollmentWizard) -> bool:
    d = w.draft
    return (
        bool(d.parent_name)
        and is_valid_email(d.email)
        and len(d.phone) >= PHONE_FORMATTED_LENGTH
        and not w.step_errors(WizardStep.PARENT_INFO)
    )


def _waiver_ready(w: EnrollmentWizard) -> bool:
    d = w.draft
    return (
        d.waiver_agreed
        and bool(d.waiver_signature)
        and signature_matches(d.waiver_signature, d.parent_name)
    )


_GATES: Dict[WizardStep, Callable[[EnrollmentWizard], bool]] = {
    WizardStep.ATHLETE_INFO: _athletes_ready,
    WizardStep.PARENT_INFO:  _parent_ready,
    WizardStep.WAIVER:       _waiver_ready,
}
