"""Stripe gateway verification client.

Retrieves PaymentIntents independently of whatever an entry point was told,
and verifies webhook signatures. Uses the v8+ StripeClient pattern with API
keys from SSM Parameter Store; a tenant's own key is preferred over the
platform key when one is configured.
"""

import hashlib
import logging
from functools import lru_cache

import stripe
from stripe import StripeClient

from tourbook.config import get_settings
from tourbook.models.payment import PaymentEvent

from .ssm_service import (
    SSMServiceError,
    get_ssm_service,
    platform_parameter_name,
    tenant_parameter_name,
)

logger = logging.getLogger(__name__)


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class GatewayUnreachableError(StripeServiceError):
    """Stripe could not be reached or rejected our credentials."""


class PaymentNotFoundError(StripeServiceError):
    """Stripe has no PaymentIntent with the requested ID."""


class StripeService:
    """Read-only access to Stripe for payment reconciliation.

    Usage:
        stripe_svc = get_stripe_service()
        payment = stripe_svc.retrieve_payment("pi_3ABC", tenant_id="tenant-1")
        if payment.succeeded and payment.tenant_marker == "tenant-1":
            ...
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service.

        Args:
            environment: Environment name (dev, prod). Defaults to settings.
        """
        self._environment = environment or get_settings().environment
        self._ssm = get_ssm_service()
        self._clients: dict[str, StripeClient] = {}

    def _get_secret_key(self, tenant_id: str | None) -> str:
        """Resolve the API key: tenant key if configured, else platform key.

        Raises:
            GatewayUnreachableError: If no key can be retrieved.
        """
        try:
            if tenant_id:
                tenant_key = self._ssm.get_optional_parameter(
                    tenant_parameter_name(self._environment, tenant_id, "secret_key")
                )
                if tenant_key:
                    return tenant_key
            return self._ssm.get_parameter(
                platform_parameter_name(self._environment, "secret_key")
            )
        except SSMServiceError as e:
            raise GatewayUnreachableError(f"Stripe credentials unavailable: {e}") from e

    def _get_client(self, tenant_id: str | None) -> StripeClient:
        secret_key = self._get_secret_key(tenant_id)
        client = self._clients.get(secret_key)
        if client is None:
            client = StripeClient(secret_key)
            self._clients[secret_key] = client
            logger.info(
                "Stripe client initialized (environment=%s, tenant=%s)",
                self._environment,
                tenant_id or "platform",
            )
        return client

    def retrieve_payment(self, payment_id: str, tenant_id: str | None = None) -> PaymentEvent:
        """Look up a PaymentIntent directly at Stripe.

        Args:
            payment_id: Stripe PaymentIntent ID (pi_xxx).
            tenant_id: Tenant whose API key should be used, if it has one.

        Returns:
            PaymentEvent with the status, amount and metadata Stripe reports.

        Raises:
            PaymentNotFoundError: If Stripe does not know the PaymentIntent.
            GatewayUnreachableError: On connection, auth or API failures.
        """
        client = self._get_client(tenant_id)

        try:
            intent = client.payment_intents.retrieve(payment_id)
        except stripe.StripeError as e:
            if isinstance(e, stripe.InvalidRequestError) and e.code == "resource_missing":
                logger.warning("PaymentIntent %s not found: %s", payment_id, e)
                raise PaymentNotFoundError(
                    f"PaymentIntent {payment_id} not found",
                    stripe_error_code=e.code,
                ) from e
            error_code = getattr(e, "code", None)
            logger.error(
                "Stripe retrieval failed for %s: %s (code: %s)",
                payment_id,
                str(e),
                error_code,
            )
            raise GatewayUnreachableError(
                f"Failed to retrieve PaymentIntent: {e}",
                stripe_error_code=error_code,
            ) from e

        metadata = {str(k): str(v) for k, v in dict(intent.metadata or {}).items()}
        payment = PaymentEvent(
            payment_id=intent.id,
            status=intent.status,
            amount=int(intent.amount or 0),
            currency=(intent.currency or "").lower(),
            metadata=metadata,
        )
        logger.info("PaymentIntent %s retrieved with status %s", payment_id, payment.status)
        return payment

    def get_webhook_secret(self, tenant_id: str) -> str | None:
        """Get the tenant's webhook signing secret, or None if not configured.

        Falls back to the platform secret. SSM failures are treated as
        "not configured" and logged.
        """
        try:
            return self._ssm.get_optional_parameter(
                tenant_parameter_name(self._environment, tenant_id, "webhook_secret")
            ) or self._ssm.get_optional_parameter(
                platform_parameter_name(self._environment, "webhook_secret")
            )
        except SSMServiceError as e:
            logger.error("Could not read webhook secret for tenant %s: %s", tenant_id, e)
            return None

    def verify_webhook_signature(self, payload: bytes, signature: str, secret: str) -> dict:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.
            secret: Webhook signing secret.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            StripeServiceError: If signature is invalid.
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
            logger.info("Webhook signature verified for event: %s", event["id"])
            return event.to_dict()

        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeServiceError("Invalid webhook signature") from e

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """Compute SHA-256 hash of a webhook payload for the audit log."""
        return hashlib.sha256(payload).hexdigest()


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance."""
    return StripeService()
