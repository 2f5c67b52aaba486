"""Reservation model and reconciliation result."""

import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import CreatedBy, ReconciliationState, ReservationStatus
from .payment import BookingMetadata, PaymentEvent


def generate_reservation_id() -> str:
    """Generate a unique reservation ID like RES-1A2B3C4D5E6F."""
    return f"RES-{uuid.uuid4().hex[:12].upper()}"


class Reservation(BaseModel):
    """A confirmed booking materialized from a verified payment.

    `number` is tenant-scoped and assigned exactly once.
    `payment_reference` is globally unique when set.
    """

    model_config = ConfigDict(strict=True)

    reservation_id: str = Field(..., description="Unique reservation ID")
    tenant_id: str = Field(..., description="Owning tenant")
    number: str = Field(
        ...,
        description="Human-readable, tenant-scoped reservation number",
        examples=["PIT-000042"],
    )
    payment_reference: str | None = Field(
        default=None,
        description="Gateway payment ID that produced this reservation",
        examples=["pi_3ABC123DEF456"],
    )
    status: ReservationStatus = Field(default=ReservationStatus.CONFIRMED)
    payment_type: str = Field(default="regular")
    is_direct_booking: bool = Field(default=True)
    collect_money: int = Field(default=0, ge=0)

    activity_date: dt.date
    program_id: str
    program_name: str | None = None
    customer_name: str
    customer_email: str
    customer_whatsapp: str | None = None
    adults: int = Field(default=1, ge=0)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    hotel_id: str | None = None
    hotel_name: str | None = None
    custom_pickup_location: str | None = None
    custom_location_google_maps: str | None = None
    room_number: str | None = None
    is_come_direct: bool = False
    notes: str | None = None

    amount_cents: int = Field(default=0, ge=0, description="Amount paid in minor units")
    currency: str = Field(default="thb")
    created_at: dt.datetime

    @classmethod
    def from_payment(
        cls,
        *,
        payment: PaymentEvent,
        booking: BookingMetadata,
        number: str,
        tenant_id: str,
    ) -> "Reservation":
        """Build a confirmed reservation from a verified payment."""
        return cls(
            reservation_id=generate_reservation_id(),
            tenant_id=tenant_id,
            number=number,
            payment_reference=payment.payment_id,
            status=ReservationStatus.CONFIRMED,
            activity_date=booking.activity_date,
            program_id=booking.program_id,
            program_name=booking.program_name,
            customer_name=booking.customer_name,
            customer_email=str(booking.customer_email),
            customer_whatsapp=booking.customer_whatsapp,
            adults=booking.adults,
            children=booking.children,
            infants=booking.infants,
            hotel_id=booking.hotel_id,
            hotel_name=booking.hotel_name,
            custom_pickup_location=booking.custom_pickup_location,
            custom_location_google_maps=booking.custom_location_google_maps,
            room_number=booking.room_number,
            is_come_direct=booking.is_come_direct,
            notes=booking.notes,
            amount_cents=payment.amount,
            currency=payment.currency,
            created_at=dt.datetime.now(dt.UTC),
        )

    @property
    def total_guests(self) -> int:
        return self.adults + self.children + self.infants

    @property
    def pickup_location(self) -> str | None:
        return self.custom_pickup_location or self.hotel_name

    def to_item(self) -> dict[str, Any]:
        """Convert to a DynamoDB item. None values are omitted."""
        item: dict[str, Any] = self.model_dump(mode="json", exclude_none=True)
        return item

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Reservation":
        """Convert a DynamoDB item (numbers arrive as Decimal) to a Reservation."""
        data = dict(item)
        for key in ("adults", "children", "infants", "collect_money", "amount_cents"):
            if key in data:
                data[key] = int(data[key])
        return cls.model_validate(data, strict=False)


class ReconciliationResult(BaseModel):
    """Outcome of one reconciliation call."""

    model_config = ConfigDict(strict=True)

    reservation: Reservation
    created_by: CreatedBy
    state: ReconciliationState
