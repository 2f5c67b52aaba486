"""Webhook endpoints for external service integrations.

These endpoints do NOT require authentication; deliveries are checked with
the tenant's Stripe signing secret and every payment is re-verified with
Stripe before a reservation is created.
"""

from fastapi import APIRouter, Depends, Request

from tourbook.models.errors import ErrorResponse
from tourbook.services.webhook_handler import WebhookHandler
from tourbook_api.dependencies import get_webhook_handler
from tourbook_api.models.webhooks import WebhookResponse

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. `payment_intent.succeeded` creates the
reservation for the payment (or returns the one already created); other
event types are acknowledged and ignored.

**200** for every well-formed event, including business-rule rejections,
so Stripe does not retry events that can never succeed.
**503** when a retry is expected to succeed.
""",
    response_model=WebhookResponse,
    responses={
        200: {"description": "Event received and processed (or acknowledged)"},
        400: {"description": "Malformed body or rejected signature", "model": ErrorResponse},
        503: {"description": "Temporary failure; Stripe should redeliver", "model": ErrorResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Handle an incoming Stripe webhook delivery."""
    # Raw bytes are needed for signature verification
    payload = await request.body()
    outcome = handler.handle(payload, request.headers.get("Stripe-Signature"))
    return WebhookResponse(received=True, **outcome.model_dump())
