"""Pytest configuration and fixtures for Tourbook reconciliation tests.

This module provides reusable fixtures for testing:
- DynamoDB and SES mocking with moto
- Sample payments, tenants and reservations
- In-memory store and sequence doubles that enforce the same uniqueness
  rules as DynamoDB, for tests that run many threads at once
"""

import datetime as dt
import os
import threading
from collections.abc import Callable
from typing import Any, Generator

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set before any tourbook import so cached settings see them
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-booking")
os.environ.setdefault("RESERVATION_NUMBER_FUNCTION", "")
os.environ.setdefault("SES_FROM_EMAIL", "bookings@tourbook.co")

if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from tourbook.models.payment import PaymentEvent  # noqa: E402
from tourbook.models.reservation import Reservation  # noqa: E402
from tourbook.models.tenant import Tenant  # noqa: E402
from tourbook.services.reservation_store import DuplicatePaymentReferenceError  # noqa: E402
from tourbook.services.sequence import format_number  # noqa: E402

TABLE_PREFIX = "test-booking"
TEST_REGION = "eu-west-1"
SENDER_EMAIL = "bookings@tourbook.co"

PAYMENT_ID = "pi_123"
TENANT_ID = "T1"


# === Singleton resets ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached settings and service singletons around each test.

    Tests using mock_aws need fresh boto3 clients created inside the mock
    context rather than ones left over from a previous test.
    """

    def _reset() -> None:
        from tourbook.config import reset_settings
        from tourbook.services.dynamodb import reset_dynamodb_service
        from tourbook.services.ssm_service import SSMService, get_ssm_service
        from tourbook.services.stripe_service import get_stripe_service

        reset_settings()
        reset_dynamodb_service()
        get_stripe_service.cache_clear()
        get_ssm_service.cache_clear()
        SSMService._instance = None
        SSMService._cache.clear()

    _reset()
    yield
    _reset()


# === AWS Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = TEST_REGION


@pytest.fixture
def aws(aws_credentials: None) -> Generator[None, None, None]:
    """Run the test inside a moto mock_aws context."""
    with mock_aws():
        yield


@pytest.fixture
def create_tables(aws: None) -> Any:
    """Create the reconciliation tables and return a DynamoDB resource."""
    client = boto3.client("dynamodb", region_name=TEST_REGION)
    for name, key in (
        ("reservations", "reservation_id"),
        ("reservation-payment-references", "payment_reference"),
        ("tenants", "tenant_id"),
        ("stripe-webhook-events", "event_id"),
    ):
        client.create_table(
            TableName=f"{TABLE_PREFIX}-{name}",
            KeySchema=[{"AttributeName": key, "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": key, "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
    return boto3.resource("dynamodb", region_name=TEST_REGION)


@pytest.fixture
def tenant_item() -> dict[str, Any]:
    return {
        "tenant_id": TENANT_ID,
        "name": "T1 Phuket Tours",
        "initials": "T1P",
        "booking_sequence": 0,
        "notification_emails": [],
        "email_from_name": "T1 Tours",
    }


@pytest.fixture
def seeded_tenant(create_tables: Any, tenant_item: dict[str, Any]) -> dict[str, Any]:
    """Tenant T1 with prefix T1P and an untouched counter."""
    create_tables.Table(f"{TABLE_PREFIX}-tenants").put_item(Item=tenant_item)
    return tenant_item


@pytest.fixture
def ses(aws: None) -> Any:
    """SES client with the platform sender verified."""
    client = boto3.client("ses", region_name=TEST_REGION)
    client.verify_email_identity(EmailAddress=SENDER_EMAIL)
    client.verify_domain_identity(Domain="tourbook.co")
    return client


# === Sample Data ===


def booking_metadata(**overrides: str) -> dict[str, str]:
    """Metadata the booking page attaches to a PaymentIntent (2 adults, 1 child)."""
    metadata = {
        "tenant_id": TENANT_ID,
        "activity_date": "2026-12-01",
        "program_id": "PRG-001",
        "program_name": "Phi Phi Island Day Trip",
        "customer_name": "Jane Doe",
        "customer_email": "jane@example.com",
        "customer_whatsapp": "+66812345678",
        "adults": "2",
        "children": "1",
        "infants": "0",
        "hotel_name": "Patong Beach Hotel",
        "room_number": "",
        "is_come_direct": "false",
        "notes": "",
    }
    metadata.update(overrides)
    return metadata


@pytest.fixture
def make_payment() -> Callable[..., PaymentEvent]:
    """Factory for verified PaymentEvents."""

    def _make(
        payment_id: str = PAYMENT_ID,
        status: str = "succeeded",
        amount: int = 450000,
        currency: str = "thb",
        metadata: dict[str, str] | None = None,
    ) -> PaymentEvent:
        return PaymentEvent(
            payment_id=payment_id,
            status=status,
            amount=amount,
            currency=currency,
            metadata=booking_metadata() if metadata is None else metadata,
        )

    return _make


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(
        tenant_id=TENANT_ID,
        name="T1 Phuket Tours",
        initials="T1P",
        notification_emails=["ops@t1tours.com", "owner@t1tours.com"],
        email_from_name="T1 Tours",
    )


@pytest.fixture
def make_reservation() -> Callable[..., Reservation]:
    """Factory for confirmed reservations."""

    def _make(
        number: str = "T1P-000001",
        payment_reference: str | None = PAYMENT_ID,
        tenant_id: str = TENANT_ID,
        **overrides: Any,
    ) -> Reservation:
        data: dict[str, Any] = {
            "reservation_id": f"RES-{number.replace('-', '')}",
            "tenant_id": tenant_id,
            "number": number,
            "payment_reference": payment_reference,
            "activity_date": dt.date(2026, 12, 1),
            "program_id": "PRG-001",
            "program_name": "Phi Phi Island Day Trip",
            "customer_name": "Jane Doe",
            "customer_email": "jane@example.com",
            "adults": 2,
            "children": 1,
            "hotel_name": "Patong Beach Hotel",
            "amount_cents": 450000,
            "currency": "thb",
            "created_at": dt.datetime(2026, 10, 1, 9, 30, tzinfo=dt.UTC),
        }
        data.update(overrides)
        return Reservation(**data)

    return _make


# === In-memory doubles ===


class InMemoryReservationStore:
    """Reservation store whose insert is atomic under a lock.

    Mirrors the DynamoDB transaction: a second insert for a payment
    reference raises DuplicatePaymentReferenceError.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.rows: dict[str, Reservation] = {}
        self.by_reference: dict[str, str] = {}
        self.insert_calls = 0

    def find_by_payment_reference(self, payment_reference: str) -> Reservation | None:
        with self._lock:
            reservation_id = self.by_reference.get(payment_reference)
            return self.rows.get(reservation_id) if reservation_id else None

    def get(self, reservation_id: str) -> Reservation | None:
        with self._lock:
            return self.rows.get(reservation_id)

    def insert(self, reservation: Reservation) -> Reservation:
        with self._lock:
            self.insert_calls += 1
            ref = reservation.payment_reference
            if ref is not None and ref in self.by_reference:
                raise DuplicatePaymentReferenceError(ref)
            self.rows[reservation.reservation_id] = reservation
            if ref is not None:
                self.by_reference[ref] = reservation.reservation_id
            return reservation


class InMemorySequence:
    """Per-tenant counter incremented under a lock."""

    def __init__(self, prefixes: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self.prefixes = prefixes or {TENANT_ID: "T1P"}
        self.values: dict[str, int] = {}
        self.issued: list[str] = []

    def next_number(self, tenant_id: str) -> str:
        with self._lock:
            value = self.values.get(tenant_id, 0) + 1
            self.values[tenant_id] = value
            number = format_number(self.prefixes[tenant_id], value)
            self.issued.append(number)
            return number


@pytest.fixture
def memory_store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def memory_sequence() -> InMemorySequence:
    return InMemorySequence()


@pytest.fixture
def make_metadata() -> Callable[..., dict[str, str]]:
    """Factory for PaymentIntent booking metadata with overrides."""
    return booking_metadata
