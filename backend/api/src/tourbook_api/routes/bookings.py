"""Booking confirmation endpoint called by the public booking page.

Public: the caller only supplies a payment reference and the tenant of the
page it was on. Both are verified against Stripe before anything is stored.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.status import HTTP_202_ACCEPTED

from tourbook.models.errors import ErrorResponse
from tourbook.services.confirmation_poller import ConfirmationPoller, PendingConfirmation
from tourbook_api.dependencies import get_confirmation_poller
from tourbook_api.models.bookings import (
    ConfirmPaymentPending,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
)

router = APIRouter(tags=["bookings"])


@router.post(
    "/booking/confirm-payment",
    summary="Confirm a completed payment",
    description="""
Called after Stripe redirects the payer back to the booking page. Waits
briefly for the webhook to create the reservation, then creates it itself
if needed. Safe to call repeatedly: every call for the same payment returns
the same reservation.

**202** means the payment is still processing; poll again.
""",
    response_model=ConfirmPaymentResponse,
    responses={
        202: {"description": "Payment still processing", "model": ConfirmPaymentPending},
        400: {"description": "Missing fields or payment not completed", "model": ErrorResponse},
        403: {"description": "Payment belongs to another operator", "model": ErrorResponse},
        404: {"description": "Payment not found", "model": ErrorResponse},
        422: {"description": "Invalid booking metadata", "model": ErrorResponse},
        503: {"description": "Temporary failure; try again", "model": ErrorResponse},
    },
)
def confirm_payment(
    body: ConfirmPaymentRequest,
    poller: ConfirmationPoller = Depends(get_confirmation_poller),
) -> ConfirmPaymentResponse | JSONResponse:
    """Return the reservation for a payment, creating it if necessary.

    A sync handler: the bounded wait blocks a threadpool worker, not the
    event loop.
    """
    result = poller.confirm(body.payment_reference, body.tenant_id)

    if isinstance(result, PendingConfirmation):
        pending = ConfirmPaymentPending(payment_status=result.payment_status)
        return JSONResponse(status_code=HTTP_202_ACCEPTED, content=pending.model_dump())

    return ConfirmPaymentResponse(
        reservation_id=result.reservation.reservation_id,
        reservation_number=result.reservation.number,
        created_by=result.created_by.value,
    )
