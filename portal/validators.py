"""
Field-level input validation and progressive formatting for the enrollment wizard.

Every validator is a pure function ``(value) -> message`` that returns an empty
string when the value is acceptable. Validators only classify input; deciding
*when* to run them (after blur, on submit) is the wizard's job.

Formatters reshape raw keystrokes into the canonical stored form, e.g.
``5551234567`` → ``(555) 123-4567``.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
EXPIRY_RE = re.compile(r"\d{2}/\d{2}")
_NON_DIGIT_RE = re.compile(r"\D")

PHONE_FORMATTED_LENGTH = 14   # "(555) 123-4567"
CARD_DIGITS = 16
CVC_MIN_DIGITS = 3
CVC_MAX_DIGITS = 4
NAME_MIN_LENGTH = 2


# ── Messages ──────────────────────────────────────────────────────────────────

class Messages:
    ATHLETE_NAME_REQUIRED = "Athlete name is required"
    PARENT_NAME_REQUIRED  = "Parent name is required"
    NAME_TOO_SHORT        = "Name must be at least 2 characters"
    DOB_REQUIRED          = "Date of birth is required"
    DOB_FUTURE            = "Date of birth cannot be in the future"
    EMAIL_REQUIRED        = "Email is required"
    EMAIL_INVALID         = "Please enter a valid email address"
    PHONE_REQUIRED        = "Phone number is required"
    PHONE_INCOMPLETE      = "Please enter a complete phone number"
    CARD_REQUIRED         = "Card number is required"
    CARD_TOO_SHORT        = "Card number must be 16 digits"
    EXPIRY_REQUIRED       = "Expiry date is required"
    EXPIRY_FORMAT         = "Format must be MM/YY"
    EXPIRY_MONTH          = "Invalid month"
    CVC_REQUIRED          = "CVC is required"
    CVC_TOO_SHORT         = "CVC must be 3 digits"
    SIGNATURE_REQUIRED    = "Signature is required"
    SIGNATURE_MISMATCH    = "Signature mismatch"


# ── Formatters ────────────────────────────────────────────────────────────────

def _digits(value: str) -> str:
    return _NON_DIGIT_RE.sub("", value or "")


def format_phone(value: str) -> str:
    """Re-insert the ``(XXX) XXX-XXXX`` groups around whatever digits were typed."""
    numbers = _digits(value)[:10]
    if len(numbers) <= 3:
        return numbers
    if len(numbers) <= 6:
        return f"({numbers[:3]}) {numbers[3:]}"
    return f"({numbers[:3]}) {numbers[3:6]}-{numbers[6:]}"


def format_card(value: str) -> str:
    """Space-separated groups of four digits, at most sixteen digits."""
    numbers = _digits(value)[:CARD_DIGITS]
    return " ".join(numbers[i:i + 4] for i in range(0, len(numbers), 4))


def format_expiry(value: str) -> str:
    """Digits only; a slash is inserted after the month once two digits exist."""
    numbers = _digits(value)[:4]
    if len(numbers) >= 2:
        return f"{numbers[:2]}/{numbers[2:]}"
    return numbers


def format_cvc(value: str) -> str:
    return _digits(value)[:CVC_MAX_DIGITS]


def parse_dob(value: str) -> Optional[date]:
    """
    Parse a typed date of birth.

    Accepts ISO ``YYYY-MM-DD`` and ``DD.MM.YYYY``. Blank input means "no date".
    Raises ValueError for anything else.
    """
    raw = (value or "").strip()
    if not raw:
        return None
    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {raw!r}")


# ── Validators ────────────────────────────────────────────────────────────────

def _validate_name(name: str, required_message: str) -> str:
    stripped = (name or "").strip()
    if not stripped:
        return required_message
    if len(stripped) < NAME_MIN_LENGTH:
        return Messages.NAME_TOO_SHORT
    return ""


def validate_athlete_name(name: str) -> str:
    return _validate_name(name, Messages.ATHLETE_NAME_REQUIRED)


def validate_parent_name(name: str) -> str:
    return _validate_name(name, Messages.PARENT_NAME_REQUIRED)


def validate_dob(dob: Optional[date], today: Optional[date] = None) -> str:
    if not dob:
        return Messages.DOB_REQUIRED
    if dob > (today or date.today()):
        return Messages.DOB_FUTURE
    return ""


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.fullmatch(email or ""))


def validate_email(email: str) -> str:
    if not (email or "").strip():
        return Messages.EMAIL_REQUIRED
    if not is_valid_email(email):
        return Messages.EMAIL_INVALID
    return ""


def validate_phone(phone: str) -> str:
    if not phone:
        return Messages.PHONE_REQUIRED
    if len(phone) < PHONE_FORMATTED_LENGTH:
        return Messages.PHONE_INCOMPLETE
    return ""


def validate_card_number(card: str) -> str:
    clean = (card or "").replace(" ", "")
    if not clean:
        return Messages.CARD_REQUIRED
    if len(clean) < CARD_DIGITS:
        return Messages.CARD_TOO_SHORT
    return ""


def validate_expiry(expiry: str) -> str:
    """MM/YY shape and month range only; an already-past date is not rejected."""
    if not expiry:
        return Messages.EXPIRY_REQUIRED
    if not EXPIRY_RE.fullmatch(expiry):
        return Messages.EXPIRY_FORMAT
    month = int(expiry.split("/")[0])
    if month < 1 or month > 12:
        return Messages.EXPIRY_MONTH
    return ""


def validate_cvc(cvc: str) -> str:
    if not cvc:
        return Messages.CVC_REQUIRED
    if len(cvc) < CVC_MIN_DIGITS:
        return Messages.CVC_TOO_SHORT
    return ""


def signature_matches(signature: str, parent_name: str) -> bool:
    """Case-insensitive but whitespace-exact: ``"Jane Doe "`` is not ``"Jane Doe"``."""
    return (signature or "").lower() == (parent_name or "").lower()


def validate_signature(signature: str, parent_name: str) -> str:
    if not signature:
        return Messages.SIGNATURE_REQUIRED
    if not signature_matches(signature, parent_name):
        return Messages.SIGNATURE_MISMATCH
    return ""
