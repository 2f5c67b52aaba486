"""Stripe webhook processing, separate from HTTP routing.

The signing secret is per tenant, and the tenant is only known from the
event's own metadata. The body is therefore parsed before its signature
is checked. Nothing in the body is trusted beyond the payment ID and the
tenant marker: the coordinator re-fetches the PaymentIntent from Stripe and
re-checks ownership.
"""

import datetime as dt
import json
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from tourbook.config import ReconciliationSettings, get_settings
from tourbook.models.enums import ReconciliationSource
from tourbook.models.errors import BookingError, ErrorCode, PaymentPendingError
from tourbook.models.payment import tenant_marker_from_metadata
from tourbook.models.stripe_webhook import StripeWebhookEvent
from tourbook.utils.logging import get_logger, log_webhook_event

from .dynamodb import DynamoDBService
from .reconciliation import ReconciliationCoordinator
from .stripe_service import StripeService, StripeServiceError

logger = get_logger(__name__)

PAYMENT_SUCCEEDED_EVENT = "payment_intent.succeeded"


class WebhookOutcome(BaseModel):
    """Result of a webhook delivery that is acknowledged with 200."""

    event_id: str
    event_type: str
    processing_result: str
    reservation_id: str | None = None
    reservation_number: str | None = None
    created_by: str | None = None
    message: str | None = None


class WebhookHandler:
    """Handles Stripe deliveries and records each one in the audit table."""

    WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"

    def __init__(
        self,
        coordinator: ReconciliationCoordinator,
        stripe_service: StripeService,
        db: DynamoDBService,
        settings: ReconciliationSettings | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.stripe = stripe_service
        self.db = db
        self.settings = settings or get_settings()

    def handle(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Process one delivery.

        Returns:
            WebhookOutcome for every syntactically valid event, including
            ignored event types and business-rule rejections.

        Raises:
            BookingError: INVALID_WEBHOOK_PAYLOAD for malformed bodies,
                INVALID_WEBHOOK_SIGNATURE when strict signature mode rejects,
                or a retryable code when Stripe should redeliver.
        """
        event = self._parse(payload)
        event_id: str = event["id"]
        event_type: str = event["type"]
        payload_hash = StripeService.compute_payload_hash(payload)

        log_webhook_event(logger, event_type, event_id, result="received")

        if event_type != PAYMENT_SUCCEEDED_EVENT:
            log_webhook_event(logger, event_type, event_id, result="ignored")
            self._audit(event_id, event_type, payload_hash, processing_result="ignored")
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result="ignored",
                message=f"Event type '{event_type}' not handled",
            )

        intent = event["data"]["object"]
        payment_reference = intent.get("id")
        if not isinstance(payment_reference, str) or not payment_reference:
            raise BookingError(
                ErrorCode.INVALID_WEBHOOK_PAYLOAD,
                details={"field": "data.object.id"},
            )

        metadata = intent.get("metadata")
        tenant_id = tenant_marker_from_metadata(metadata if isinstance(metadata, dict) else None)
        if not tenant_id:
            log_webhook_event(
                logger,
                event_type,
                event_id,
                payment_reference=payment_reference,
                result="rejected",
                error="missing tenant marker",
            )
            self._audit(
                event_id,
                event_type,
                payload_hash,
                payment_reference=payment_reference,
                processing_result="rejected",
                error_message="Missing tenant marker in metadata",
            )
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result="rejected",
                message="Missing tenant marker in metadata",
            )

        signature_status = self._check_signature(payload, signature, tenant_id)
        if signature_status in ("invalid", "missing"):
            if self.settings.webhook_reject_invalid_signature:
                self._audit(
                    event_id,
                    event_type,
                    payload_hash,
                    tenant_id=tenant_id,
                    payment_reference=payment_reference,
                    signature_status=signature_status,
                    processing_result="rejected",
                    error_message="Invalid webhook signature",
                )
                raise BookingError(ErrorCode.INVALID_WEBHOOK_SIGNATURE)
            logger.warning(
                "Webhook %s signature %s for tenant %s; continuing with gateway re-verification",
                event_id,
                signature_status,
                tenant_id,
            )

        audit: dict[str, Any] = {
            "tenant_id": tenant_id,
            "payment_reference": payment_reference,
            "signature_status": signature_status,
        }

        try:
            result = self.coordinator.reconcile(
                payment_reference, tenant_id, ReconciliationSource.WEBHOOK
            )
        except PaymentPendingError as e:
            log_webhook_event(
                logger, event_type, event_id, result="pending", payment_status=e.payment_status, **audit
            )
            self._audit(event_id, event_type, payload_hash, processing_result="pending", **audit)
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result="pending",
                message=e.message,
            )
        except BookingError as e:
            if e.retryable:
                log_webhook_event(
                    logger, event_type, event_id, result="error", error=e.code.value, **audit
                )
                self._audit(
                    event_id,
                    event_type,
                    payload_hash,
                    processing_result="error",
                    error_message=e.code.value,
                    **audit,
                )
                raise
            log_webhook_event(
                logger, event_type, event_id, result="rejected", error=e.code.value, **audit
            )
            self._audit(
                event_id,
                event_type,
                payload_hash,
                processing_result="rejected",
                error_message=e.code.value,
                **audit,
            )
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result="rejected",
                message=e.message,
            )
        except Exception as e:
            self._audit(
                event_id,
                event_type,
                payload_hash,
                processing_result="error",
                error_message=type(e).__name__,
                **audit,
            )
            raise

        reservation = result.reservation
        log_webhook_event(
            logger,
            event_type,
            event_id,
            reservation_id=reservation.reservation_id,
            result=result.created_by.value,
            **audit,
        )
        self._audit(
            event_id,
            event_type,
            payload_hash,
            reservation_id=reservation.reservation_id,
            processing_result=result.created_by.value,
            **audit,
        )
        return WebhookOutcome(
            event_id=event_id,
            event_type=event_type,
            processing_result=result.created_by.value,
            reservation_id=reservation.reservation_id,
            reservation_number=reservation.number,
            created_by=result.created_by.value,
        )

    @staticmethod
    def _parse(payload: bytes) -> dict[str, Any]:
        """Parse and shape-check the event body.

        Raises:
            BookingError: INVALID_WEBHOOK_PAYLOAD.
        """
        try:
            event = json.loads(payload)
        except ValueError as e:
            logger.warning("Webhook body is not JSON: %s", e)
            raise BookingError(ErrorCode.INVALID_WEBHOOK_PAYLOAD) from e

        if not isinstance(event, dict):
            raise BookingError(ErrorCode.INVALID_WEBHOOK_PAYLOAD)
        for field in ("id", "type"):
            if not isinstance(event.get(field), str) or not event[field]:
                raise BookingError(ErrorCode.INVALID_WEBHOOK_PAYLOAD, details={"field": field})
        data = event.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
            raise BookingError(ErrorCode.INVALID_WEBHOOK_PAYLOAD, details={"field": "data.object"})
        return event

    def _check_signature(self, payload: bytes, signature: str | None, tenant_id: str) -> str:
        """Return verified, invalid, missing or not_configured."""
        secret = self.stripe.get_webhook_secret(tenant_id)
        if not secret:
            logger.info("No webhook secret configured for tenant %s", tenant_id)
            return "not_configured"
        if not signature:
            logger.warning("Webhook for tenant %s has no Stripe-Signature header", tenant_id)
            return "missing"
        try:
            self.stripe.verify_webhook_signature(payload, signature, secret)
        except StripeServiceError:
            return "invalid"
        except Exception:
            logger.exception("Signature verification failed unexpectedly for tenant %s", tenant_id)
            return "invalid"
        return "verified"

    def _audit(
        self,
        event_id: str,
        event_type: str,
        payload_hash: str,
        *,
        processing_result: str,
        tenant_id: str | None = None,
        payment_reference: str | None = None,
        reservation_id: str | None = None,
        signature_status: str = "not_configured",
        error_message: str | None = None,
    ) -> None:
        """Record the delivery. Failures are logged, never raised."""
        record = StripeWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            processed_at=dt.datetime.now(dt.UTC),
            payload_hash=payload_hash,
            tenant_id=tenant_id,
            payment_reference=payment_reference,
            reservation_id=reservation_id,
            signature_status=signature_status,
            processing_result=processing_result,
            error_message=error_message,
        )
        try:
            self.db.put_item(self.WEBHOOK_EVENTS_TABLE, record.to_item())
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to record webhook event %s: %s", event_id, e)
