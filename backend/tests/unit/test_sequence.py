"""Unit tests for ReservationNumberGenerator.

Test categories:
- Prefix derivation and formatting
- Local counter path against moto DynamoDB
- Remote Lambda path and fallback
- Concurrent issuance
"""

import io
import json
import threading
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, ReadTimeoutError

from tourbook.services.dynamodb import DynamoDBService
from tourbook.services.sequence import (
    ReservationNumberGenerator,
    SequenceGenerationError,
    derive_prefix,
    format_number,
)


def _lambda_response(result: Any, function_error: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {
        "StatusCode": 200,
        "Payload": io.BytesIO(json.dumps(result).encode()),
    }
    if function_error:
        response["FunctionError"] = function_error
    return response


def _tenant_row(resource: Any) -> dict[str, Any]:
    return resource.Table("test-booking-tenants").get_item(Key={"tenant_id": "T1"})["Item"]


# === Prefix and formatting ===


class TestDerivePrefix:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Phuket Island Tours Co., Ltd.", "PIT"),
            ("andaman sea kayak company", "ASK"),
            ("Krabi Adventure Travel And Leisure Holidays Group", "KATAL"),
            ("Siam-Dive Inc.", "SD"),
        ],
    )
    def test_initials_of_significant_words(self, name: str, expected: str) -> None:
        assert derive_prefix(name) == expected

    @pytest.mark.parametrize("name", ["", None, "Co., Ltd.", "123 456", "!!!"])
    def test_placeholder_when_no_letters_remain(self, name: str | None) -> None:
        assert derive_prefix(name) == "BK"


def test_format_number_pads_to_six_digits() -> None:
    assert format_number("PIT", 42) == "PIT-000042"
    assert format_number("T1P", 1234567) == "T1P-1234567"


# === Local counter path ===


class TestLocalCounter:
    def test_issues_increasing_numbers_from_stored_initials(self, seeded_tenant, create_tables) -> None:
        generator = ReservationNumberGenerator(DynamoDBService())

        assert generator.next_number("T1") == "T1P-000001"
        assert generator.next_number("T1") == "T1P-000002"
        assert _tenant_row(create_tables)["booking_sequence"] == Decimal(2)

    def test_derives_and_stores_prefix_when_initials_missing(self, create_tables) -> None:
        create_tables.Table("test-booking-tenants").put_item(
            Item={"tenant_id": "T1", "name": "Phuket Island Tours Co., Ltd.", "booking_sequence": 41}
        )
        generator = ReservationNumberGenerator(DynamoDBService())

        assert generator.next_number("T1") == "PIT-000042"
        assert _tenant_row(create_tables)["initials"] == "PIT"

    def test_long_stored_initials_are_not_truncated(self, create_tables) -> None:
        create_tables.Table("test-booking-tenants").put_item(
            Item={"tenant_id": "T1", "name": "T1", "initials": "ABCDEF", "booking_sequence": 0}
        )
        generator = ReservationNumberGenerator(DynamoDBService())

        assert generator.next_number("T1") == "ABCDEF-000001"

    def test_unknown_tenant_fails_without_fabricating(self, create_tables) -> None:
        generator = ReservationNumberGenerator(DynamoDBService())

        with pytest.raises(SequenceGenerationError):
            generator.next_number("nobody")

    def test_failed_write_is_fatal(self) -> None:
        db = MagicMock()
        db.get_item.return_value = {"tenant_id": "T1", "initials": "T1P"}
        db.update_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "UpdateItem",
        )
        generator = ReservationNumberGenerator(db)

        with pytest.raises(SequenceGenerationError):
            generator.next_number("T1")

    def test_increment_is_a_single_atomic_update(self) -> None:
        db = MagicMock()
        db.get_item.return_value = {"tenant_id": "T1", "initials": "T1P"}
        db.update_item.return_value = {"tenant_id": "T1", "initials": "T1P", "booking_sequence": Decimal(7)}
        generator = ReservationNumberGenerator(db)

        assert generator.next_number("T1") == "T1P-000007"
        args, kwargs = db.update_item.call_args
        assert "ADD booking_sequence :one" in args[2]
        assert kwargs["condition_expression"] == "attribute_exists(tenant_id)"
        db.put_item.assert_not_called()


# === Remote path ===


class TestRemoteSequence:
    def test_remote_string_result_is_used(self) -> None:
        db = MagicMock()
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = _lambda_response("T1P-000007")
        generator = ReservationNumberGenerator(db, function_name="gen", lambda_client=lambda_client)

        assert generator.next_number("T1") == "T1P-000007"
        payload = json.loads(lambda_client.invoke.call_args.kwargs["Payload"])
        assert payload == {"tenant_id": "T1", "payment_type": "paid"}
        db.update_item.assert_not_called()

    def test_remote_object_result_is_formatted(self) -> None:
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = _lambda_response({"prefix": "T1P", "value": 12})
        generator = ReservationNumberGenerator(MagicMock(), function_name="gen", lambda_client=lambda_client)

        assert generator.next_number("T1") == "T1P-000012"

    def test_remote_result_with_long_stored_prefix_is_used(self) -> None:
        db = MagicMock()
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = _lambda_response("ABCDEF-000001")
        generator = ReservationNumberGenerator(db, function_name="gen", lambda_client=lambda_client)

        assert generator.next_number("T1") == "ABCDEF-000001"
        db.update_item.assert_not_called()

    @pytest.mark.parametrize(
        "failure",
        [
            ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "gone"}}, "Invoke"),
            ReadTimeoutError(endpoint_url="https://lambda.eu-west-1.amazonaws.com"),
        ],
    )
    def test_remote_unavailable_falls_back_to_persisted_counter(
        self, seeded_tenant, create_tables, failure
    ) -> None:
        lambda_client = MagicMock()
        lambda_client.invoke.side_effect = failure
        generator = ReservationNumberGenerator(
            DynamoDBService(), function_name="gen", lambda_client=lambda_client
        )

        assert generator.next_number("T1") == "T1P-000001"
        assert _tenant_row(create_tables)["booking_sequence"] == Decimal(1)

    @pytest.mark.parametrize(
        "response",
        [
            _lambda_response({"errorMessage": "boom"}, function_error="Unhandled"),
            _lambda_response(None),
            _lambda_response(""),
            _lambda_response("not-a-number"),
        ],
    )
    def test_unusable_remote_result_falls_back(self, response) -> None:
        db = MagicMock()
        db.get_item.return_value = {"tenant_id": "T1", "initials": "T1P"}
        db.update_item.return_value = {"initials": "T1P", "booking_sequence": Decimal(3)}
        lambda_client = MagicMock()
        lambda_client.invoke.return_value = response
        generator = ReservationNumberGenerator(db, function_name="gen", lambda_client=lambda_client)

        assert generator.next_number("T1") == "T1P-000003"
        db.update_item.assert_called_once()

    def test_remote_disabled_without_function_name(self) -> None:
        db = MagicMock()
        db.get_item.return_value = {"tenant_id": "T1", "initials": "T1P"}
        db.update_item.return_value = {"initials": "T1P", "booking_sequence": Decimal(1)}
        lambda_client = MagicMock()
        generator = ReservationNumberGenerator(db, function_name=None, lambda_client=lambda_client)

        generator.next_number("T1")

        lambda_client.invoke.assert_not_called()


# === Concurrency ===


class _AtomicCounterTable:
    """Stands in for DynamoDB's ADD: read-modify-write happens under one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.row: dict[str, Any] = {"tenant_id": "T1", "initials": "T1P", "booking_sequence": Decimal(0)}

    def get_item(self, table, key, consistent_read=False):
        with self._lock:
            return dict(self.row)

    def update_item(self, table, key, update_expression, values, names=None, condition_expression=None):
        with self._lock:
            self.row["booking_sequence"] += values[":one"]
            return dict(self.row)


def test_concurrent_issuance_never_repeats_or_skips() -> None:
    generator = ReservationNumberGenerator(_AtomicCounterTable())  # type: ignore[arg-type]
    barrier = threading.Barrier(20)
    issued: list[str] = []
    issued_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        for _ in range(5):
            number = generator.next_number("T1")
            with issued_lock:
                issued.append(number)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(issued) == [format_number("T1P", n) for n in range(1, 101)]
