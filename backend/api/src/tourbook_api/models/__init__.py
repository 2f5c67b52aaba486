"""API-specific request/response models.

Domain models (Reservation, PaymentEvent, ErrorResponse, ...) live in
tourbook.models and are reused here where appropriate.

Modules:
- bookings: confirm-payment request and responses
- webhooks: Stripe webhook responses
"""

from .bookings import ConfirmPaymentPending, ConfirmPaymentRequest, ConfirmPaymentResponse
from .webhooks import WebhookResponse

__all__ = [
    "ConfirmPaymentPending",
    "ConfirmPaymentRequest",
    "ConfirmPaymentResponse",
    "WebhookResponse",
]
