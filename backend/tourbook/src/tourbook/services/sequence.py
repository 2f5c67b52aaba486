"""Reservation number generation.

Numbers look like ``PIT-000042``: a tenant prefix and a per-tenant counter.
The counter lives on the tenant row (``booking_sequence``) and only ever
moves through an atomic increment, so concurrent requests for the same
tenant can neither repeat nor lose a value.

Primary path: a Lambda function that increments the counter server-side.
Fallback: the same increment done here with DynamoDB ``ADD``.
"""

import json
import logging
import re
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "BK"
MAX_PREFIX_LENGTH = 5
NUMBER_WIDTH = 6

# Words dropped before taking initials ("Phuket Tours Co., Ltd." -> "PT")
SUFFIX_WORDS: frozenset[str] = frozenset(
    {"co", "company", "ltd", "limited", "inc", "llc", "corp", "corporation"}
)

NUMBER_PATTERN = re.compile(r"^[A-Z0-9]+-\d{6,}$")


class SequenceGenerationError(Exception):
    """Neither the remote nor the local counter produced a number."""


def derive_prefix(name: str | None) -> str:
    """Build a reservation prefix from a tenant display name.

    Punctuation and company suffix words are stripped, the first letter of
    each remaining word is uppercased, and the result is cut to five
    characters. A name without letters yields DEFAULT_PREFIX.
    """
    cleaned = re.sub(r"[^\w\s]", " ", name or "")
    initials = [
        word[0].upper()
        for word in cleaned.split()
        if word.lower() not in SUFFIX_WORDS and word[0].isalpha()
    ]
    return "".join(initials)[:MAX_PREFIX_LENGTH] or DEFAULT_PREFIX


def format_number(prefix: str, value: int) -> str:
    """Format a reservation number, e.g. ("PIT", 42) -> "PIT-000042"."""
    return f"{prefix}-{value:0{NUMBER_WIDTH}d}"


class ReservationNumberGenerator:
    """Issues unique, increasing reservation numbers per tenant.

    Every call advances the counter, including calls whose reservation
    is later discarded; never call speculatively.
    """

    TENANTS_TABLE = "tenants"

    def __init__(
        self,
        db: DynamoDBService,
        function_name: str | None = None,
        timeout_seconds: float = 3.0,
        lambda_client: Any | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            db: DynamoDB service for the fallback counter.
            function_name: Lambda implementing the remote increment. None
                disables the remote path.
            timeout_seconds: Connect/read timeout for the Lambda call.
            lambda_client: Preconfigured boto3 Lambda client (tests).
        """
        self.db = db
        self.function_name = function_name
        self._timeout = timeout_seconds
        self._lambda_client = lambda_client

    def _get_lambda_client(self) -> Any:
        if self._lambda_client is None:
            self._lambda_client = boto3.client(
                "lambda",
                config=Config(
                    connect_timeout=self._timeout,
                    read_timeout=self._timeout,
                    retries={"max_attempts": 0},
                ),
            )
        return self._lambda_client

    def next_number(self, tenant_id: str) -> str:
        """Issue the next reservation number for a tenant.

        Raises:
            SequenceGenerationError: If both paths fail.
        """
        if self.function_name:
            number = self._next_remote(tenant_id)
            if number:
                logger.info("Remote sequence issued %s for tenant %s", number, tenant_id)
                return number
            logger.warning("Falling back to local sequence for tenant %s", tenant_id)

        number = self._next_local(tenant_id)
        logger.info("Local sequence issued %s for tenant %s", number, tenant_id)
        return number

    def _next_remote(self, tenant_id: str) -> str | None:
        """Call the remote increment. Returns None on any failure."""
        try:
            response = self._get_lambda_client().invoke(
                FunctionName=self.function_name,
                InvocationType="RequestResponse",
                Payload=json.dumps({"tenant_id": tenant_id, "payment_type": "paid"}).encode(),
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning("Remote sequence call failed for tenant %s: %s", tenant_id, e)
            return None

        if response.get("FunctionError"):
            logger.warning(
                "Remote sequence function error for tenant %s: %s",
                tenant_id,
                response["FunctionError"],
            )
            return None

        try:
            result = json.loads(response["Payload"].read() or b"null")
        except (KeyError, ValueError) as e:
            logger.warning("Unreadable remote sequence result for tenant %s: %s", tenant_id, e)
            return None

        return self._parse_remote_result(result, tenant_id)

    @staticmethod
    def _parse_remote_result(result: Any, tenant_id: str) -> str | None:
        if isinstance(result, str) and NUMBER_PATTERN.match(result):
            return result
        if isinstance(result, dict) and result.get("prefix") and result.get("value") is not None:
            try:
                return format_number(str(result["prefix"]), int(result["value"]))
            except (TypeError, ValueError):
                pass
        logger.warning("Invalid remote sequence result for tenant %s: %r", tenant_id, result)
        return None

    def _next_local(self, tenant_id: str) -> str:
        """Atomically increment the tenant's persisted counter.

        Raises:
            SequenceGenerationError: If the tenant is unknown or the write fails.
        """
        key = {"tenant_id": tenant_id}
        try:
            tenant = self.db.get_item(self.TENANTS_TABLE, key, consistent_read=True)
            if not tenant:
                raise SequenceGenerationError(f"Tenant {tenant_id} not found")

            prefix = str(tenant.get("initials") or "").strip() or derive_prefix(tenant.get("name"))

            attrs = self.db.update_item(
                self.TENANTS_TABLE,
                key,
                "SET initials = if_not_exists(initials, :initials) ADD booking_sequence :one",
                {":initials": prefix, ":one": 1},
                condition_expression="attribute_exists(tenant_id)",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Local sequence update failed for tenant %s: %s", tenant_id, e)
            raise SequenceGenerationError(f"Counter update failed for tenant {tenant_id}") from e

        if not attrs or "booking_sequence" not in attrs:
            raise SequenceGenerationError(f"Tenant {tenant_id} disappeared during increment")

        value = int(attrs["booking_sequence"])
        prefix = str(attrs.get("initials") or "").strip() or prefix
        return format_number(prefix, value)
