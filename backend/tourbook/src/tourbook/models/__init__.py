"""Pydantic models for tour booking payment reconciliation."""

from .enums import (
    PENDING_PAYMENT_STATUSES,
    CreatedBy,
    PaymentStatus,
    ReconciliationSource,
    ReconciliationState,
    ReservationStatus,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    RETRYABLE_ERRORS,
    BookingError,
    ErrorCode,
    ErrorResponse,
    PaymentPendingError,
    PaymentRejectedError,
)
from .payment import BookingMetadata, PaymentEvent, tenant_marker_from_metadata
from .reservation import ReconciliationResult, Reservation, generate_reservation_id
from .stripe_webhook import StripeWebhookEvent
from .tenant import Tenant

__all__ = [
    # Enums
    "CreatedBy",
    "PaymentStatus",
    "PENDING_PAYMENT_STATUSES",
    "ReconciliationSource",
    "ReconciliationState",
    "ReservationStatus",
    # Payment
    "BookingMetadata",
    "PaymentEvent",
    "tenant_marker_from_metadata",
    # Reservation
    "ReconciliationResult",
    "Reservation",
    "generate_reservation_id",
    # Tenant
    "Tenant",
    # Errors
    "BookingError",
    "ErrorCode",
    "ErrorResponse",
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "PaymentPendingError",
    "PaymentRejectedError",
    "RETRYABLE_ERRORS",
    # Stripe
    "StripeWebhookEvent",
]
