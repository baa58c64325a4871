"""
Terminal "pay and enroll" submission.

The guard keeps a status enum (IDLE → SUBMITTING → DONE | FAILED). Claiming the
SUBMITTING slot is a synchronous compare-and-swap, so on a single event loop
no second caller can slip in between the check and the set. A FAILED
submission may be retried; DONE is final.

Wire payload
------------
``{parentInfo: {...}, athletes: [{...}], paymentInfo: {...}}`` — built with
pydantic models whose aliases carry the camelCase names expected by the
enrollment service.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.enrollment.models import EnrollmentDraft
from portal.validators import validate_card_number, validate_cvc, validate_expiry

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Enrollment failed. Please try again."
PAYMENT_FIELDS = ("card_number", "expiry", "cvc")


# ── Payload ───────────────────────────────────────────────────────────────────

class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ParentInfo(_WireModel):
    email:      str
    first_name: str = Field(alias="firstName")
    last_name:  str = Field(alias="lastName")
    phone:      Optional[str] = None


class AthletePayload(_WireModel):
    first_name:    str = Field(alias="firstName")
    last_name:     str = Field(alias="lastName")
    date_of_birth: date = Field(alias="dateOfBirth")
    gender:        str = "Male"
    jersey_size:   str = Field(default="M", alias="jerseySize")
    session_id:    str = Field(alias="sessionId")

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        if not v:
            raise ValueError("Athlete must have a selected program")
        return v


class PaymentInfo(_WireModel):
    card_number: str = Field(alias="cardNumber")
    expiry:      str
    cvc:         str


class EnrollmentRequest(_WireModel):
    parent_info:  ParentInfo = Field(alias="parentInfo")
    athletes:     List[AthletePayload]
    payment_info: PaymentInfo = Field(alias="paymentInfo")

    @field_validator("athletes")
    @classmethod
    def validate_athletes(cls, v: List[AthletePayload]) -> List[AthletePayload]:
        if not v:
            raise ValueError("At least one athlete is required")
        return v

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


@dataclass
class EnrollmentResponse:
    is_new_account: bool
    parent_id:      Optional[int] = None
    enrollment_ids: List[int] = field(default_factory=list)


class EnrollmentRejected(Exception):
    """The enrollment service refused the submission; ``message`` is user-facing."""

    def __init__(self, message: str = GENERIC_FAILURE) -> None:
        super().__init__(message)
        self.message = message


class EnrollmentGateway(Protocol):
    async def enroll(self, request: EnrollmentRequest) -> EnrollmentResponse:
        ...


def split_name(full_name: str) -> Tuple[str, str]:
    """
    Split on the first space of the trimmed name.
    A single-word name is used for both parts.
    """
    first, _, rest = (full_name or "").strip().partition(" ")
    return first, rest or first


def build_enrollment_request(draft: EnrollmentDraft) -> EnrollmentRequest:
    parent_first, parent_last = split_name(draft.parent_name)
    athletes = []
    for a in draft.athletes:
        first, last = split_name(a.name)
        athletes.append(AthletePayload(
            first_name=first,
            last_name=last,
            date_of_birth=a.dob,
            gender=a.gender,
            jersey_size=a.jersey_size,
            session_id=a.selected_session_id or "",
        ))
    return EnrollmentRequest(
        parent_info=ParentInfo(
            email=draft.email,
            first_name=parent_first,
            last_name=parent_last,
            phone=draft.phone or None,
        ),
        athletes=athletes,
        payment_info=PaymentInfo(
            card_number=draft.card_number,
            expiry=draft.expiry,
            cvc=draft.cvc,
        ),
    )


# ── Guard ─────────────────────────────────────────────────────────────────────

class SubmissionStatus(enum.Enum):
    IDLE       = "idle"
    SUBMITTING = "submitting"
    DONE       = "done"
    FAILED     = "failed"


class SubmitResult(enum.Enum):
    IGNORED   = "ignored"     # duplicate while in flight, or already done
    INVALID   = "invalid"     # payment fields failed validation
    SUCCEEDED = "succeeded"
    FAILED    = "failed"      # service rejected / errored; retry allowed


def payment_errors(draft: EnrollmentDraft) -> dict:
    return {
        "card_number": validate_card_number(draft.card_number),
        "expiry":      validate_expiry(draft.expiry),
        "cvc":         validate_cvc(draft.cvc),
    }


class SubmissionGuard:
    """At most one enrollment request in flight per wizard."""

    def __init__(self) -> None:
        self.status: SubmissionStatus = SubmissionStatus.IDLE
        self.response: Optional[EnrollmentResponse] = None
        self.error: str = ""

    @property
    def is_processing(self) -> bool:
        return self.status is SubmissionStatus.SUBMITTING

    def try_begin(self) -> bool:
        """Compare-and-swap IDLE|FAILED → SUBMITTING. No await inside."""
        if self.status in (SubmissionStatus.IDLE, SubmissionStatus.FAILED):
            self.status = SubmissionStatus.SUBMITTING
            return True
        return False

    async def submit(self, draft: EnrollmentDraft, gateway: EnrollmentGateway) -> SubmitResult:
        if self.status in (SubmissionStatus.SUBMITTING, SubmissionStatus.DONE):
            return SubmitResult.IGNORED

        if any(payment_errors(draft).values()):
            return SubmitResult.INVALID

        if not self.try_begin():
            return SubmitResult.IGNORED

        self.error = ""
        try:
            request = build_enrollment_request(draft)
            response = await gateway.enroll(request)
        except EnrollmentRejected as e:
            logger.info("Enrollment rejected for %s: %s", draft.email, e.message)
            self.error = e.message or GENERIC_FAILURE
            self.status = SubmissionStatus.FAILED
            return SubmitResult.FAILED
        except Exception:
            logger.exception("Enrollment submission failed for %s", draft.email)
            self.error = GENERIC_FAILURE
            self.status = SubmissionStatus.FAILED
            return SubmitResult.FAILED

        self.response = response
        self.status = SubmissionStatus.DONE
        return SubmitResult.SUCCEEDED
