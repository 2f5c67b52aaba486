"""API models for webhook endpoints."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe for every well-formed event."""

    received: bool = True
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "created", "existing", "ignored", "rejected", "pending"
    reservation_id: str | None = None
    reservation_number: str | None = None
    created_by: str | None = None
    message: str | None = None
