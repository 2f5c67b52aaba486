"""Standard error codes for payment reconciliation.

Entry points convert every failure into one of these codes so that both the
webhook and the confirmation endpoint answer with the same error shape.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes for reconciliation failures."""

    # Input errors (ERR_001-ERR_003)
    VALIDATION_FAILED = "ERR_001"
    INVALID_WEBHOOK_PAYLOAD = "ERR_002"
    MISSING_FIELDS = "ERR_003"

    # Payment verification errors (ERR_PAY_001-ERR_PAY_004)
    PAYMENT_REJECTED = "ERR_PAY_001"
    PAYMENT_PENDING = "ERR_PAY_002"
    TENANT_MISMATCH = "ERR_PAY_003"
    PAYMENT_NOT_FOUND = "ERR_PAY_004"

    # Infrastructure errors (ERR_SYS_001-ERR_SYS_003)
    GATEWAY_UNAVAILABLE = "ERR_SYS_001"
    SEQUENCE_UNAVAILABLE = "ERR_SYS_002"
    RECONCILIATION_CONFLICT = "ERR_SYS_003"

    # Stripe webhook errors (ERR_STRIPE_001)
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"


# Human-readable error messages (safe to show to the payer)
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "Booking details attached to the payment are invalid",
    ErrorCode.INVALID_WEBHOOK_PAYLOAD: "Webhook payload could not be parsed",
    ErrorCode.MISSING_FIELDS: "Missing required fields",
    ErrorCode.PAYMENT_REJECTED: "Payment was not completed",
    ErrorCode.PAYMENT_PENDING: "Payment is still processing",
    ErrorCode.TENANT_MISMATCH: "Payment does not belong to this operator",
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found",
    ErrorCode.GATEWAY_UNAVAILABLE: "Payment provider is temporarily unavailable",
    ErrorCode.SEQUENCE_UNAVAILABLE: "Your booking is being processed",
    ErrorCode.RECONCILIATION_CONFLICT: "Your booking is being processed",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: "Contact the operator with your payment reference",
    ErrorCode.INVALID_WEBHOOK_PAYLOAD: "Send a valid gateway event body",
    ErrorCode.MISSING_FIELDS: "Provide payment_reference and tenant_id",
    ErrorCode.PAYMENT_REJECTED: "Try the payment again or use a different card",
    ErrorCode.PAYMENT_PENDING: "Check again in a few seconds",
    ErrorCode.TENANT_MISMATCH: "Verify the booking page you paid on",
    ErrorCode.PAYMENT_NOT_FOUND: "Verify the payment reference",
    ErrorCode.GATEWAY_UNAVAILABLE: "Check again in a few seconds",
    ErrorCode.SEQUENCE_UNAVAILABLE: "Check again in a few seconds",
    ErrorCode.RECONCILIATION_CONFLICT: "Check again in a few seconds",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
}

# Codes where a retry of the same request is expected to succeed
RETRYABLE_ERRORS: set[ErrorCode] = {
    ErrorCode.PAYMENT_PENDING,
    ErrorCode.GATEWAY_UNAVAILABLE,
    ErrorCode.SEQUENCE_UNAVAILABLE,
    ErrorCode.RECONCILIATION_CONFLICT,
}


class ErrorResponse(BaseModel):
    """Standard error body returned by the HTTP entry points."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class BookingError(Exception):
    """Exception raised when a payment cannot be reconciled.

    Details must never carry gateway or database error text; they are
    returned to the payer as-is.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_ERRORS

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)


class PaymentRejectedError(BookingError):
    """Payment failed verification (bad status or foreign tenant)."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.PAYMENT_REJECTED,
        payment_status: str | None = None,
        details: Optional[dict[str, str]] = None,
    ):
        self.payment_status = payment_status
        super().__init__(code, details)


class PaymentPendingError(PaymentRejectedError):
    """Payment exists but has not reached a terminal status yet."""

    def __init__(self, payment_status: str, details: Optional[dict[str, str]] = None):
        super().__init__(
            code=ErrorCode.PAYMENT_PENDING,
            payment_status=payment_status,
            details=details,
        )
