"""Reservation persistence with payment-reference uniqueness.

DynamoDB has no secondary unique constraint, so uniqueness of
``payment_reference`` is enforced with a guard table keyed by the reference.
A reservation carrying a payment reference is written in one transaction
together with its guard row; the transaction is cancelled if either row
already exists. That cancellation is the only arbiter of "has this payment
already produced a reservation".
"""

import datetime as dt
import logging
from typing import Any

from tourbook.config import ReservationWriteCapabilities
from tourbook.models.reservation import Reservation

from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class DuplicatePaymentReferenceError(Exception):
    """A reservation for this payment reference already exists."""

    def __init__(self, payment_reference: str) -> None:
        super().__init__(f"Reservation already exists for payment {payment_reference}")
        self.payment_reference = payment_reference


class ReservationStore:
    """Reads and conditional inserts of reservations."""

    RESERVATIONS_TABLE = "reservations"
    PAYMENT_REFERENCES_TABLE = "reservation-payment-references"

    def __init__(
        self,
        db: DynamoDBService,
        capabilities: ReservationWriteCapabilities | None = None,
    ) -> None:
        self.db = db
        self.capabilities = capabilities or ReservationWriteCapabilities()

    def get(self, reservation_id: str) -> Reservation | None:
        item = self.db.get_item(
            self.RESERVATIONS_TABLE,
            {"reservation_id": reservation_id},
            consistent_read=True,
        )
        return Reservation.from_item(item) if item else None

    def find_by_payment_reference(self, payment_reference: str) -> Reservation | None:
        """Find the reservation produced by a payment, if any.

        Both reads are strongly consistent so that a reservation committed by
        a concurrent request is visible immediately after its transaction.
        """
        guard = self.db.get_item(
            self.PAYMENT_REFERENCES_TABLE,
            {"payment_reference": payment_reference},
            consistent_read=True,
        )
        if not guard:
            return None

        reservation = self.get(guard["reservation_id"])
        if reservation is None:
            # Guard and row are written atomically; this means manual deletion
            logger.error(
                "Payment reference %s points at missing reservation %s",
                payment_reference,
                guard["reservation_id"],
            )
        return reservation

    def insert(self, reservation: Reservation) -> Reservation:
        """Insert a new reservation.

        Raises:
            DuplicatePaymentReferenceError: If the payment reference is taken.
        """
        item: dict[str, Any] = self.capabilities.filter_item(reservation.to_item())

        if reservation.payment_reference is None:
            written = self.db.put_item(
                self.RESERVATIONS_TABLE,
                item,
                condition_expression="attribute_not_exists(reservation_id)",
            )
            if not written:
                raise ValueError(f"Reservation ID collision: {reservation.reservation_id}")
            return reservation

        guard = {
            "payment_reference": reservation.payment_reference,
            "reservation_id": reservation.reservation_id,
            "tenant_id": reservation.tenant_id,
            "created_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        committed = self.db.transact_write(
            [
                self.db.build_put(
                    self.RESERVATIONS_TABLE,
                    item,
                    condition_expression="attribute_not_exists(reservation_id)",
                ),
                self.db.build_put(
                    self.PAYMENT_REFERENCES_TABLE,
                    guard,
                    condition_expression="attribute_not_exists(payment_reference)",
                ),
            ]
        )
        if not committed:
            logger.info(
                "Insert of %s lost the race for payment %s",
                reservation.number,
                reservation.payment_reference,
            )
            raise DuplicatePaymentReferenceError(reservation.payment_reference)

        logger.info(
            "Reservation %s (%s) stored for payment %s",
            reservation.reservation_id,
            reservation.number,
            reservation.payment_reference,
        )
        return reservation
