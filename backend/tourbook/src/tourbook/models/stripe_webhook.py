"""Stripe webhook audit record."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StripeWebhookEvent(BaseModel):
    """Log of a received Stripe webhook delivery.

    Used for auditing and debugging only. Deliveries are NOT deduplicated
    by event_id: a redelivery must still return the reservation it produced,
    which the reconciliation coordinator does by payment reference.
    """

    model_config = ConfigDict(strict=True)

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["payment_intent.succeeded"],
    )
    processed_at: datetime = Field(..., description="When the delivery was handled")
    payload_hash: str = Field(
        ...,
        description="SHA-256 hash of the raw payload",
    )
    tenant_id: str | None = Field(default=None, description="Tenant marker from metadata")
    payment_reference: str | None = Field(default=None, description="PaymentIntent ID")
    reservation_id: str | None = Field(default=None)
    signature_status: str = Field(
        default="not_configured",
        description="verified, invalid, missing or not_configured",
    )
    processing_result: str = Field(
        default="success",
        description="created, existing, ignored, rejected, pending or error",
    )
    error_message: str | None = Field(default=None)

    def to_item(self) -> dict[str, Any]:
        item: dict[str, Any] = self.model_dump(mode="json", exclude_none=True)
        return item
