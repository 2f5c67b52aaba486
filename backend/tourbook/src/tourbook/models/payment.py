"""Payment models consumed by reconciliation.

PaymentEvent is never persisted by this package; it is the verified view of
a Stripe PaymentIntent. BookingMetadata is the prospective reservation that
the public booking page attached to the PaymentIntent metadata.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .enums import PaymentStatus

# Metadata keys that identify the owning tenant, in lookup order
TENANT_METADATA_KEYS: tuple[str, ...] = ("tenant_id", "company_id")


def tenant_marker_from_metadata(metadata: dict[str, Any] | None) -> str | None:
    """Return the tenant marker carried by gateway metadata, if any."""
    if not metadata:
        return None
    for key in TENANT_METADATA_KEYS:
        value = metadata.get(key)
        if value:
            return str(value)
    return None


class PaymentEvent(BaseModel):
    """A payment record as reported by the gateway.

    Amounts are in minor units (cents/satang).
    """

    model_config = ConfigDict(strict=True, frozen=True)

    payment_id: str = Field(..., description="Gateway payment ID (pi_xxx)")
    status: str = Field(..., description="Gateway status, e.g. 'succeeded'")
    amount: int = Field(..., ge=0, description="Amount in minor units")
    currency: str = Field(..., description="ISO currency code, lowercase")
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED.value

    @property
    def tenant_marker(self) -> str | None:
        return tenant_marker_from_metadata(self.metadata)


class BookingMetadata(BaseModel):
    """Reservation fields carried in PaymentIntent metadata.

    Stripe metadata values are always strings, so this model runs in lax
    mode: "2" becomes 2, "true" becomes True, "" becomes None.
    """

    model_config = ConfigDict(strict=False, str_strip_whitespace=True)

    tenant_id: str = Field(..., min_length=1)
    activity_date: date
    program_id: str = Field(..., min_length=1)
    program_name: str | None = None
    customer_name: str = Field(..., min_length=1)
    customer_email: EmailStr
    customer_whatsapp: str | None = None
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    hotel_id: str | None = None
    hotel_name: str | None = None
    custom_pickup_location: str | None = None
    custom_location_google_maps: str | None = None
    room_number: str | None = None
    is_come_direct: bool = False
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator(
        "customer_whatsapp",
        "program_name",
        "hotel_id",
        "hotel_name",
        "custom_pickup_location",
        "custom_location_google_maps",
        "room_number",
        "notes",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("adults", "children", "infants", "is_come_direct", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value

    @classmethod
    def from_payment(cls, payment: PaymentEvent) -> "BookingMetadata":
        """Parse metadata of a verified payment.

        Raises:
            pydantic.ValidationError: If required fields are missing or malformed.
        """
        data: dict[str, Any] = dict(payment.metadata)
        data.setdefault("tenant_id", payment.tenant_marker)
        return cls.model_validate(data)

    @property
    def total_guests(self) -> int:
        return self.adults + self.children + self.infants
