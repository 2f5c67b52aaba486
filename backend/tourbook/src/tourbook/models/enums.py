"""Enumerations shared across reconciliation models."""

from enum import Enum


class ReservationStatus(str, Enum):
    """Reservation lifecycle status.

    This flow only ever writes CONFIRMED; the other values exist in
    reservations created by the dashboard.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    VOID = "void"


class PaymentStatus(str, Enum):
    """Stripe PaymentIntent statuses the coordinator distinguishes."""

    SUCCEEDED = "succeeded"
    PROCESSING = "processing"
    REQUIRES_ACTION = "requires_action"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_CAPTURE = "requires_capture"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    CANCELED = "canceled"


# Statuses that may still become SUCCEEDED without payer action on our side
PENDING_PAYMENT_STATUSES: frozenset[str] = frozenset(
    {
        PaymentStatus.PROCESSING.value,
        PaymentStatus.REQUIRES_ACTION.value,
        PaymentStatus.REQUIRES_CONFIRMATION.value,
        PaymentStatus.REQUIRES_CAPTURE.value,
    }
)


class CreatedBy(str, Enum):
    """Which branch of reconciliation produced the returned reservation."""

    CREATED = "created"
    EXISTING = "existing"


class ReconciliationState(str, Enum):
    """States of the reconciliation state machine."""

    VERIFYING = "verifying"
    CHECKING = "checking"
    GENERATING = "generating"
    INSERTING = "inserting"
    NOTIFYING = "notifying"
    DONE = "done"
    RECONCILED = "reconciled"


class ReconciliationSource(str, Enum):
    """Entry point that triggered reconciliation."""

    WEBHOOK = "webhook"
    CONFIRMATION = "confirmation"
