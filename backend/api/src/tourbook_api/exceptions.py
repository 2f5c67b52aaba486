"""FastAPI exception handlers for converting BookingError to HTTP responses.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: missing request fields, payment not completed, malformed
  webhook body or signature
- 403 Forbidden: payment belongs to another tenant
- 404 Not Found: unknown payment reference
- 422 Unprocessable Entity: booking metadata attached to the payment is invalid
- 503 Service Unavailable: retryable failures (Stripe, sequence, in-flight conflict)

Usage:
    from tourbook_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from tourbook.models.errors import BookingError, ErrorCode, ErrorResponse

logger = logging.getLogger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Input errors -> 400/422
    ErrorCode.VALIDATION_FAILED: HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.MISSING_FIELDS: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_WEBHOOK_PAYLOAD: HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: HTTP_400_BAD_REQUEST,
    # Verification errors
    ErrorCode.PAYMENT_REJECTED: HTTP_400_BAD_REQUEST,
    ErrorCode.TENANT_MISMATCH: HTTP_403_FORBIDDEN,
    ErrorCode.PAYMENT_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Retryable -> 503 so Stripe redelivers and the page re-polls
    ErrorCode.PAYMENT_PENDING: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.GATEWAY_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SEQUENCE_UNAVAILABLE: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.RECONCILIATION_CONFLICT: HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError into an ErrorResponse body."""
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.warning("%s %s answered %d (%s)", request.method, request.url.path, status_code, exc.code.value)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer malformed request bodies with MISSING_FIELDS instead of FastAPI's default."""
    fields = sorted(
        {
            str(error["loc"][-1])
            for error in exc.errors()
            if error.get("loc") and error["loc"][0] == "body" and len(error["loc"]) > 1
        }
    )
    response = ErrorResponse.from_code(
        ErrorCode.MISSING_FIELDS,
        {"fields": ", ".join(fields)} if fields else None,
    )
    return JSONResponse(
        status_code=get_http_status_for_error(ErrorCode.MISSING_FIELDS),
        content=response.model_dump(mode="json"),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Answer uncaught exceptions without exposing internal details."""
    logger.exception("Unhandled exception on %s: %s", request.url.path, exc)

    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error_code": "ERR_INTERNAL",
            "message": "Your booking is being processed",
            "recovery": "Check again in a few seconds",
            "details": None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
