from portal.services.catalog_service import (
    DEFAULT_PROGRAMS, list_programs, load_catalog, seed_default_programs,
)
from portal.services.enrollment_service import (
    DatabaseEnrollmentGateway, create_public_enrollment, find_or_create_parent,
    get_user_by_email, mask_card,
)
from portal.services.account_service import (
    AccountSession, establish_account, get_account_by_telegram, list_family,
)
from portal.services.billing_service import (
    DisplayStatus, Invoice, display_status, list_invoices, to_invoice,
)
from portal.services.notification_service import (
    enrollment_success_text, format_receipt, notify_enrollment_confirmed,
)

__all__ = [
    # catalog
    "DEFAULT_PROGRAMS", "list_programs", "load_catalog", "seed_default_programs",
    # enrollment
    "DatabaseEnrollmentGateway", "create_public_enrollment", "find_or_create_parent",
    "get_user_by_email", "mask_card",
    # account
    "AccountSession", "establish_account", "get_account_by_telegram", "list_family",
    # billing
    "DisplayStatus", "Invoice", "display_status", "list_invoices", "to_invoice",
    # notifications
    "enrollment_success_text", "format_receipt", "notify_enrollment_confirmed",
]
