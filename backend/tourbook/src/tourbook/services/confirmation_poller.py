"""Confirmation call made by the booking page after the Stripe redirect.

The webhook usually lands within a second or two of the redirect, so the
poller waits a little and looks for the reservation the webhook created
before reconciling on its own. The wait only reduces duplicate-insert
races; the coordinator still resolves any that happen.
"""

import time
from collections.abc import Callable

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from tourbook.config import ReconciliationSettings, get_settings
from tourbook.models.enums import CreatedBy, ReconciliationSource, ReconciliationState
from tourbook.models.errors import PaymentPendingError
from tourbook.models.reservation import ReconciliationResult, Reservation
from tourbook.utils.logging import get_logger

from .reconciliation import ReconciliationCoordinator, ReservationRepository

logger = get_logger(__name__)


class PendingConfirmation(BaseModel):
    """The payment exists but has not succeeded yet; the client should re-poll."""

    payment_reference: str
    payment_status: str


class ConfirmationPoller:
    """Bounded wait for a webhook-created reservation, then reconcile.

    The loop is: sleep ``initial_delay``, then up to ``max_checks`` lookups
    spaced by ``retry_interval``. No sleep extends past ``deadline`` seconds
    from the start of the call.
    """

    def __init__(
        self,
        coordinator: ReconciliationCoordinator,
        store: ReservationRepository,
        settings: ReconciliationSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = settings or get_settings()
        self.coordinator = coordinator
        self.store = store
        self.initial_delay = settings.confirmation_initial_delay_seconds
        self.retry_interval = settings.confirmation_retry_interval_seconds
        self.max_checks = settings.confirmation_max_checks
        self.deadline = settings.confirmation_deadline_seconds
        self._sleep = sleep
        self._clock = clock

    def confirm(
        self, payment_reference: str, tenant_id: str
    ) -> ReconciliationResult | PendingConfirmation:
        """Return the reservation for a payment, creating it if nobody has.

        Raises:
            BookingError: Verification failures from the coordinator.
        """
        deadline_at = self._clock() + self.deadline

        self._pause(self.initial_delay, deadline_at)
        for attempt in range(1, self.max_checks + 1):
            existing = self._lookup(payment_reference)
            if existing is not None and existing.tenant_id == tenant_id:
                logger.info(
                    "Reservation %s for %s found on check %d",
                    existing.number,
                    payment_reference,
                    attempt,
                )
                return ReconciliationResult(
                    reservation=existing,
                    created_by=CreatedBy.EXISTING,
                    state=ReconciliationState.RECONCILED,
                )
            if existing is not None:
                # Foreign tenant claim; the coordinator rejects it after verification
                break
            if attempt == self.max_checks or self._clock() >= deadline_at:
                break
            logger.debug("No reservation for %s yet, check %d/%d", payment_reference, attempt, self.max_checks)
            self._pause(self.retry_interval, deadline_at)

        logger.info("Reconciling %s after wait", payment_reference)
        try:
            return self.coordinator.reconcile(
                payment_reference, tenant_id, ReconciliationSource.CONFIRMATION
            )
        except PaymentPendingError as e:
            logger.info("Payment %s still pending (%s)", payment_reference, e.payment_status)
            return PendingConfirmation(
                payment_reference=payment_reference,
                payment_status=e.payment_status or "unknown",
            )

    def _pause(self, seconds: float, deadline_at: float) -> None:
        wait = min(seconds, deadline_at - self._clock())
        if wait > 0:
            self._sleep(wait)

    def _lookup(self, payment_reference: str) -> Reservation | None:
        try:
            return self.store.find_by_payment_reference(payment_reference)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Lookup of %s failed during wait: %s", payment_reference, e)
            return None
