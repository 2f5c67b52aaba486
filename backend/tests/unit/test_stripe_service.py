"""Unit tests for StripeService.

Stripe and SSM are mocked; webhook signatures are computed for real with
the same HMAC scheme Stripe uses.

Test categories:
- Credential resolution (tenant key vs platform key)
- retrieve_payment() mapping and error translation
- get_webhook_secret() and verify_webhook_signature()
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock, patch

import pytest
import stripe

from tourbook.services.ssm_service import SSMServiceError
from tourbook.services.stripe_service import (
    GatewayUnreachableError,
    PaymentNotFoundError,
    StripeService,
    StripeServiceError,
)

# === Test Configuration ===

PLATFORM_KEY = "sk_test_platform"
TENANT_KEY = "sk_test_tenant_t1"
WEBHOOK_SECRET = "whsec_test_t1"

PARAMETERS = {
    "/booking/dev/stripe/secret_key": PLATFORM_KEY,
    "/booking/dev/tenants/T1/stripe/secret_key": TENANT_KEY,
    "/booking/dev/tenants/T1/stripe/webhook_secret": WEBHOOK_SECRET,
}


# === Test Fixtures ===


@pytest.fixture
def mock_ssm_service():
    """Mock SSM service backed by PARAMETERS."""
    with patch("tourbook.services.stripe_service.get_ssm_service") as mock_get_ssm:
        mock_ssm = MagicMock()
        mock_ssm.get_parameter.side_effect = lambda name: PARAMETERS[name]
        mock_ssm.get_optional_parameter.side_effect = lambda name: PARAMETERS.get(name)
        mock_get_ssm.return_value = mock_ssm
        yield mock_ssm


@pytest.fixture
def mock_client_class():
    with patch("tourbook.services.stripe_service.StripeClient") as client_class:
        yield client_class


@pytest.fixture
def stripe_client(mock_client_class) -> MagicMock:
    client = MagicMock()
    mock_client_class.return_value = client
    return client


@pytest.fixture
def stripe_service(mock_ssm_service) -> StripeService:
    return StripeService(environment="dev")


def _intent(**overrides) -> MagicMock:
    intent = MagicMock()
    intent.id = overrides.get("id", "pi_123")
    intent.status = overrides.get("status", "succeeded")
    intent.amount = overrides.get("amount", 450000)
    intent.currency = overrides.get("currency", "THB")
    intent.metadata = overrides.get("metadata", {"tenant_id": "T1", "adults": "2"})
    return intent


def _sign(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# === Credentials ===


class TestCredentials:
    def test_tenant_key_preferred(self, stripe_service, mock_client_class, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.return_value = _intent()

        stripe_service.retrieve_payment("pi_123", tenant_id="T1")

        mock_client_class.assert_called_once_with(TENANT_KEY)

    def test_platform_key_when_tenant_has_none(
        self, stripe_service, mock_client_class, stripe_client
    ) -> None:
        stripe_client.payment_intents.retrieve.return_value = _intent()

        stripe_service.retrieve_payment("pi_123", tenant_id="T2")

        mock_client_class.assert_called_once_with(PLATFORM_KEY)

    def test_client_reused_per_key(self, stripe_service, mock_client_class, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.return_value = _intent()

        stripe_service.retrieve_payment("pi_123", tenant_id="T1")
        stripe_service.retrieve_payment("pi_456", tenant_id="T1")

        assert mock_client_class.call_count == 1

    def test_ssm_failure_is_gateway_unreachable(
        self, stripe_service, mock_ssm_service, stripe_client
    ) -> None:
        mock_ssm_service.get_optional_parameter.side_effect = SSMServiceError("Access denied")

        with pytest.raises(GatewayUnreachableError):
            stripe_service.retrieve_payment("pi_123", tenant_id="T1")

        stripe_client.payment_intents.retrieve.assert_not_called()


# === retrieve_payment() ===


class TestRetrievePayment:
    def test_maps_intent_to_payment_event(self, stripe_service, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.return_value = _intent()

        payment = stripe_service.retrieve_payment("pi_123", tenant_id="T1")

        stripe_client.payment_intents.retrieve.assert_called_once_with("pi_123")
        assert payment.payment_id == "pi_123"
        assert payment.succeeded
        assert payment.amount == 450000
        assert payment.currency == "thb"
        assert payment.metadata == {"tenant_id": "T1", "adults": "2"}
        assert payment.tenant_marker == "T1"

    def test_missing_metadata_is_empty(self, stripe_service, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.return_value = _intent(metadata=None)

        payment = stripe_service.retrieve_payment("pi_123")

        assert payment.metadata == {}
        assert payment.tenant_marker is None

    def test_unknown_intent(self, stripe_service, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError(
            "No such payment_intent: 'pi_404'", "intent", code="resource_missing"
        )

        with pytest.raises(PaymentNotFoundError) as exc_info:
            stripe_service.retrieve_payment("pi_404", tenant_id="T1")

        assert exc_info.value.stripe_error_code == "resource_missing"

    def test_rejected_request_is_not_a_missing_intent(self, stripe_service, stripe_client) -> None:
        stripe_client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError(
            "Invalid string: pi_123 is not a valid id", "intent", code="parameter_invalid"
        )

        with pytest.raises(GatewayUnreachableError) as exc_info:
            stripe_service.retrieve_payment("pi_123", tenant_id="T1")

        assert exc_info.value.stripe_error_code == "parameter_invalid"

    @pytest.mark.parametrize(
        "error",
        [
            stripe.APIConnectionError("Network error"),
            stripe.AuthenticationError("Invalid API Key provided"),
            stripe.RateLimitError("Too many requests"),
        ],
    )
    def test_other_stripe_errors_are_unreachable(self, stripe_service, stripe_client, error) -> None:
        stripe_client.payment_intents.retrieve.side_effect = error

        with pytest.raises(GatewayUnreachableError):
            stripe_service.retrieve_payment("pi_123", tenant_id="T1")


# === Webhooks ===


class TestWebhookSecret:
    def test_tenant_secret(self, stripe_service) -> None:
        assert stripe_service.get_webhook_secret("T1") == WEBHOOK_SECRET

    def test_no_secret_configured(self, stripe_service) -> None:
        assert stripe_service.get_webhook_secret("T2") is None

    def test_platform_secret_fallback(self, stripe_service) -> None:
        with patch.dict(PARAMETERS, {"/booking/dev/stripe/webhook_secret": "whsec_platform"}):
            assert stripe_service.get_webhook_secret("T2") == "whsec_platform"

    def test_ssm_failure_reads_as_not_configured(self, stripe_service, mock_ssm_service) -> None:
        mock_ssm_service.get_optional_parameter.side_effect = SSMServiceError("throttled")

        assert stripe_service.get_webhook_secret("T1") is None


class TestVerifyWebhookSignature:
    payload = json.dumps(
        {"id": "evt_1", "object": "event", "type": "payment_intent.succeeded", "data": {"object": {}}}
    ).encode()

    def test_valid_signature(self, stripe_service) -> None:
        event = stripe_service.verify_webhook_signature(
            self.payload, _sign(self.payload, WEBHOOK_SECRET), WEBHOOK_SECRET
        )

        assert event["id"] == "evt_1"
        assert type(event) is dict
        assert event["type"] == "payment_intent.succeeded"

    def test_wrong_secret(self, stripe_service) -> None:
        with pytest.raises(StripeServiceError, match="Invalid webhook signature"):
            stripe_service.verify_webhook_signature(
                self.payload, _sign(self.payload, "whsec_other"), WEBHOOK_SECRET
            )

    def test_stale_timestamp(self, stripe_service) -> None:
        stale = int(time.time()) - 3600

        with pytest.raises(StripeServiceError):
            stripe_service.verify_webhook_signature(
                self.payload, _sign(self.payload, WEBHOOK_SECRET, stale), WEBHOOK_SECRET
            )

    def test_garbage_header(self, stripe_service) -> None:
        with pytest.raises(StripeServiceError):
            stripe_service.verify_webhook_signature(self.payload, "not-a-signature", WEBHOOK_SECRET)


def test_payload_hash_is_sha256() -> None:
    assert StripeService.compute_payload_hash(b"{}") == hashlib.sha256(b"{}").hexdigest()
