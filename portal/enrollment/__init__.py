from portal.enrollment.models import (
    AthleteDraft,
    EnrollmentDraft,
    Gender,
    JerseySize,
    ProgramStatus,
    TrainingSession,
)
from portal.enrollment.eligibility import compute_age, is_eligible, resolve_eligible_sessions
from portal.enrollment.pricing import PricingConfig, PricingSnapshot, compute_pricing, format_currency
from portal.enrollment.receipt import ConfirmedEnrollment, SubscriptionDescriptor, assemble_receipt
from portal.enrollment.submission import (
    EnrollmentGateway,
    EnrollmentRejected,
    EnrollmentRequest,
    EnrollmentResponse,
    SubmissionGuard,
    SubmissionStatus,
    SubmitResult,
    build_enrollment_request,
)
from portal.enrollment.wizard import (
    EnrollmentWizard,
    InvalidTransition,
    WizardError,
    WizardEvent,
    WizardLocked,
    WizardStep,
)
from portal.enrollment.registry import WizardRegistry

__all__ = [
    # data
    "AthleteDraft", "EnrollmentDraft", "Gender", "JerseySize", "ProgramStatus", "TrainingSession",
    # eligibility
    "compute_age", "is_eligible", "resolve_eligible_sessions",
    # pricing
    "PricingConfig", "PricingSnapshot", "compute_pricing", "format_currency",
    # receipt
    "ConfirmedEnrollment", "SubscriptionDescriptor", "assemble_receipt",
    # submission
    "EnrollmentGateway", "EnrollmentRejected", "EnrollmentRequest", "EnrollmentResponse",
    "SubmissionGuard", "SubmissionStatus", "SubmitResult", "build_enrollment_request",
    # wizard
    "EnrollmentWizard", "InvalidTransition", "WizardError", "WizardEvent", "WizardLocked",
    "WizardStep", "WizardRegistry",
]
