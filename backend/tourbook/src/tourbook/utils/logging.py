"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management for request tracing
- Structured logging formatter for consistent log output
- Helper functions for webhook and reconciliation logging

Usage:
    from tourbook.utils.logging import get_logger, set_correlation_id

    # In middleware/request handler:
    set_correlation_id(request.headers.get("X-Correlation-ID"))

    # In service code:
    logger = get_logger(__name__)
    log_reconciliation_step(logger, "checking", payment_reference="pi_123")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

# Context variable for correlation ID - thread-safe and async-safe
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request context.

    Args:
        correlation_id: Optional existing correlation ID. If None, generates new one.

    Returns:
        The correlation ID that was set
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    """Get the current correlation ID, or None if not set."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID context."""
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes every line with the correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"

        base = super().format(record)

        # Prefix makes grep by request trivial
        return f"[{record.correlation_id}] {base}"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the structured formatter on the root handler.

    Safe to call more than once; existing handlers are reused.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level)
    root.setLevel(level)
    for handler in root.handlers:
        handler.setFormatter(
            StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        if not any(isinstance(f, CorrelationIdFilter) for f in handler.filters):
            handler.addFilter(CorrelationIdFilter())


def log_reconciliation_step(
    logger: logging.Logger,
    state: str,
    *,
    payment_reference: str | None = None,
    tenant_id: str | None = None,
    reservation_number: str | None = None,
    source: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a reconciliation state transition with structured context.

    Args:
        logger: Logger instance
        state: State being entered (verifying, checking, generating, ...)
        payment_reference: Gateway payment identifier
        tenant_id: Tenant resolved by the entry point
        reservation_number: Reservation number once known
        source: Entry point that triggered reconciliation (webhook, confirmation)
        error: Error message if the step failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {"state": state}

    if payment_reference:
        context["payment_reference"] = payment_reference
    if tenant_id:
        context["tenant_id"] = tenant_id
    if reservation_number:
        context["reservation_number"] = reservation_number
    if source:
        context["source"] = source
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Reconciliation: {state}"]
    for key, value in context.items():
        if key != "state":
            msg_parts.append(f"{key}={value}")

    message = " | ".join(msg_parts)

    if error:
        logger.error(message, extra=context)
    else:
        logger.info(message, extra=context)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    tenant_id: str | None = None,
    payment_reference: str | None = None,
    reservation_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook event with structured context.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g., "payment_intent.succeeded")
        event_id: Stripe event ID
        tenant_id: Tenant marker read from the payload
        payment_reference: PaymentIntent ID carried by the event
        reservation_id: Associated reservation ID if available
        result: Processing result (received, success, existing, ignored, rejected, error)
        error: Error message if processing failed
        **extra: Additional context fields
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "event_id": event_id,
    }

    if tenant_id:
        context["tenant_id"] = tenant_id
    if payment_reference:
        context["payment_reference"] = payment_reference
    if reservation_id:
        context["reservation_id"] = reservation_id
    if result:
        context["result"] = result
    if error:
        context["error"] = error

    context.update(extra)

    msg_parts = [f"Webhook event: {event_type} ({event_id})"]
    if result:
        msg_parts.append(f"result={result}")
    if payment_reference:
        msg_parts.append(f"payment={payment_reference}")
    if reservation_id:
        msg_parts.append(f"reservation={reservation_id}")
    if error:
        msg_parts.append(f"error={error}")

    message = " | ".join(msg_parts)

    if result == "error":
        logger.error(message, extra=context)
    elif result in ("ignored", "rejected", "pending"):
        logger.warning(message, extra=context)
    else:
        logger.info(message, extra=context)
