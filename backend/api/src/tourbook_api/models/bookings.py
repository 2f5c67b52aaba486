"""API models for the post-payment confirmation endpoint."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ConfirmPaymentRequest(BaseModel):
    """Sent by the booking page after Stripe redirects the payer back.

    The legacy booking page posts camelCase keys (paymentIntentId,
    companyId); both spellings are accepted.
    """

    model_config = ConfigDict(
        strict=True,
        json_schema_extra={
            "examples": [
                {"payment_reference": "pi_3ABC123DEF456", "tenant_id": "tenant-1"},
            ]
        },
    )

    payment_reference: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("payment_reference", "paymentIntentId"),
        description="Stripe PaymentIntent ID",
    )
    tenant_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("tenant_id", "companyId", "company_id"),
        description="Tenant the booking page belongs to",
    )


class ConfirmPaymentResponse(BaseModel):
    """Reservation produced (or found) for the payment."""

    success: bool = True
    reservation_id: str
    reservation_number: str = Field(..., examples=["PIT-000042"])
    created_by: Literal["created", "existing"]


class ConfirmPaymentPending(BaseModel):
    """Payment not settled yet; the page should poll again."""

    success: bool = False
    status: Literal["pending"] = "pending"
    payment_status: str = Field(..., examples=["processing"])
