"""Reconciliation coordinator: one verified payment, exactly one reservation.

Both the Stripe webhook and the post-redirect confirmation call end up here,
possibly at the same time for the same payment. The flow is

    verifying -> checking -> generating -> inserting -> notifying -> done
                    |                          |
                    +------> reconciled <------+

"checking" is only an optimisation. The conditional insert in the
reservation store decides races; the loser re-reads the winner's row and
returns it as ``existing`` without notifying anyone.
"""

import time
from collections.abc import Callable
from typing import Protocol

from pydantic import ValidationError

from tourbook.models.enums import (
    PENDING_PAYMENT_STATUSES,
    CreatedBy,
    ReconciliationSource,
    ReconciliationState,
)
from tourbook.models.errors import (
    BookingError,
    ErrorCode,
    PaymentPendingError,
    PaymentRejectedError,
)
from tourbook.models.payment import BookingMetadata, PaymentEvent
from tourbook.models.reservation import ReconciliationResult, Reservation
from tourbook.models.tenant import Tenant
from tourbook.utils.logging import get_logger, log_reconciliation_step

from .notification_service import NotificationService
from .reservation_store import DuplicatePaymentReferenceError
from .sequence import SequenceGenerationError
from .stripe_service import PaymentNotFoundError, StripeServiceError

logger = get_logger(__name__)

# Re-reads of the winning row after a cancelled insert. A transaction
# cancelled by a conflicting write can return before that write is visible.
WINNER_READ_ATTEMPTS = 4
WINNER_READ_INTERVAL_SECONDS = 0.25


class PaymentGateway(Protocol):
    def retrieve_payment(self, payment_id: str, tenant_id: str | None = None) -> PaymentEvent: ...


class ReservationRepository(Protocol):
    def find_by_payment_reference(self, payment_reference: str) -> Reservation | None: ...

    def insert(self, reservation: Reservation) -> Reservation: ...


class NumberGenerator(Protocol):
    def next_number(self, tenant_id: str) -> str: ...


class TenantDirectory(Protocol):
    def get_tenant(self, tenant_id: str) -> Tenant | None: ...


class ReconciliationCoordinator:
    """Turns a payment reference into a confirmed reservation, idempotently."""

    def __init__(
        self,
        gateway: PaymentGateway,
        store: ReservationRepository,
        sequence: NumberGenerator,
        tenants: TenantDirectory,
        notifications: NotificationService,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.sequence = sequence
        self.tenants = tenants
        self.notifications = notifications
        self._sleep = sleep

    def reconcile(
        self,
        payment_reference: str,
        tenant_id: str,
        source: ReconciliationSource = ReconciliationSource.CONFIRMATION,
    ) -> ReconciliationResult:
        """Materialize the reservation for a payment, or return the existing one.

        Args:
            payment_reference: Stripe PaymentIntent ID.
            tenant_id: Tenant resolved by the entry point. It is checked
                against the metadata of the payment as Stripe reports it.
            source: Entry point, for logging.

        Returns:
            ReconciliationResult with created_by "created" only for the call
            that performed the insert.

        Raises:
            PaymentPendingError: Payment has not reached a terminal status.
            PaymentRejectedError: Payment failed, or belongs to another tenant.
            BookingError: Not found, invalid metadata, or a retryable
                infrastructure failure (gateway, sequence, conflict).
        """
        ctx = {"payment_reference": payment_reference, "tenant_id": tenant_id, "source": source.value}

        log_reconciliation_step(logger, ReconciliationState.VERIFYING.value, **ctx)
        payment, booking, tenant = self._verify(payment_reference, tenant_id)

        log_reconciliation_step(logger, ReconciliationState.CHECKING.value, **ctx)
        existing = self.store.find_by_payment_reference(payment_reference)
        if existing is not None:
            log_reconciliation_step(
                logger,
                ReconciliationState.RECONCILED.value,
                reservation_number=existing.number,
                **ctx,
            )
            return ReconciliationResult(
                reservation=existing,
                created_by=CreatedBy.EXISTING,
                state=ReconciliationState.RECONCILED,
            )

        log_reconciliation_step(logger, ReconciliationState.GENERATING.value, **ctx)
        try:
            number = self.sequence.next_number(tenant_id)
        except SequenceGenerationError as e:
            log_reconciliation_step(
                logger, ReconciliationState.GENERATING.value, error=str(e), **ctx
            )
            raise BookingError(ErrorCode.SEQUENCE_UNAVAILABLE) from e

        reservation = Reservation.from_payment(
            payment=payment,
            booking=booking,
            number=number,
            tenant_id=tenant_id,
        )

        log_reconciliation_step(
            logger, ReconciliationState.INSERTING.value, reservation_number=number, **ctx
        )
        try:
            reservation = self.store.insert(reservation)
        except DuplicatePaymentReferenceError:
            winner = self._find_winner(payment_reference)
            if winner is None:
                log_reconciliation_step(
                    logger,
                    ReconciliationState.INSERTING.value,
                    reservation_number=number,
                    error="insert cancelled but no committed reservation found",
                    **ctx,
                )
                raise BookingError(ErrorCode.RECONCILIATION_CONFLICT)
            # The number issued to this call is never reused
            log_reconciliation_step(
                logger,
                ReconciliationState.RECONCILED.value,
                reservation_number=winner.number,
                discarded_number=number,
                **ctx,
            )
            return ReconciliationResult(
                reservation=winner,
                created_by=CreatedBy.EXISTING,
                state=ReconciliationState.RECONCILED,
            )

        log_reconciliation_step(
            logger, ReconciliationState.NOTIFYING.value, reservation_number=number, **ctx
        )
        self._notify(reservation, tenant)

        log_reconciliation_step(
            logger, ReconciliationState.DONE.value, reservation_number=number, **ctx
        )
        return ReconciliationResult(
            reservation=reservation,
            created_by=CreatedBy.CREATED,
            state=ReconciliationState.DONE,
        )

    def _verify(
        self, payment_reference: str, tenant_id: str
    ) -> tuple[PaymentEvent, BookingMetadata, Tenant]:
        try:
            payment = self.gateway.retrieve_payment(payment_reference, tenant_id=tenant_id)
        except PaymentNotFoundError as e:
            raise BookingError(
                ErrorCode.PAYMENT_NOT_FOUND,
                details={"payment_reference": payment_reference},
            ) from e
        except StripeServiceError as e:
            raise BookingError(ErrorCode.GATEWAY_UNAVAILABLE) from e

        if payment.payment_id != payment_reference:
            raise PaymentRejectedError(payment_status=payment.status)

        if payment.status in PENDING_PAYMENT_STATUSES:
            logger.info("Payment %s still %s", payment_reference, payment.status)
            raise PaymentPendingError(payment.status)

        if not payment.succeeded:
            logger.warning("Payment %s rejected with status %s", payment_reference, payment.status)
            raise PaymentRejectedError(
                payment_status=payment.status,
                details={"payment_status": payment.status},
            )

        marker = payment.tenant_marker
        if marker != tenant_id:
            logger.warning(
                "Payment %s belongs to tenant %s, not %s",
                payment_reference,
                marker,
                tenant_id,
            )
            raise PaymentRejectedError(ErrorCode.TENANT_MISMATCH, payment_status=payment.status)

        tenant = self.tenants.get_tenant(tenant_id)
        if tenant is None:
            raise PaymentRejectedError(ErrorCode.TENANT_MISMATCH, payment_status=payment.status)

        try:
            booking = BookingMetadata.from_payment(payment)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            logger.warning(
                "Payment %s carries invalid booking metadata: %s",
                payment_reference,
                ", ".join(fields),
            )
            raise BookingError(
                ErrorCode.VALIDATION_FAILED,
                details={"fields": ", ".join(fields)},
            ) from e

        if booking.tenant_id != tenant_id:
            raise PaymentRejectedError(ErrorCode.TENANT_MISMATCH, payment_status=payment.status)

        return payment, booking, tenant

    def _find_winner(self, payment_reference: str) -> Reservation | None:
        for attempt in range(WINNER_READ_ATTEMPTS):
            if attempt:
                self._sleep(WINNER_READ_INTERVAL_SECONDS)
            winner = self.store.find_by_payment_reference(payment_reference)
            if winner is not None:
                return winner
        return None

    def _notify(self, reservation: Reservation, tenant: Tenant) -> None:
        """Dispatch notifications. Never raises."""
        try:
            self.notifications.send_confirmation(reservation, tenant)
        except Exception:
            logger.exception("Confirmation for %s failed", reservation.number)
        try:
            self.notifications.send_operational_alerts(reservation, tenant)
        except Exception:
            logger.exception("Operational alerts for %s failed", reservation.number)
