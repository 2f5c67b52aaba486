"""SSM Parameter Store service for platform and tenant secrets.

Stripe credentials are stored per environment, and optionally per tenant:

    /booking/{env}/stripe/secret_key
    /booking/{env}/stripe/webhook_secret
    /booking/{env}/tenants/{tenant_id}/stripe/secret_key
    /booking/{env}/tenants/{tenant_id}/stripe/webhook_secret
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""


class SSMParameterNotFound(SSMServiceError):
    """Raised when the requested parameter does not exist."""


def platform_parameter_name(environment: str, key: str) -> str:
    """Path of a platform-wide Stripe parameter."""
    return f"/booking/{environment}/stripe/{key}"


def tenant_parameter_name(environment: str, tenant_id: str, key: str) -> str:
    """Path of a tenant-specific Stripe parameter."""
    return f"/booking/{environment}/tenants/{tenant_id}/stripe/{key}"


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Values are cached in-process; secrets rotate rarely and every
    reconciliation would otherwise pay one or two SSM round-trips. Misses
    are not cached, so a parameter added later is picked up without a
    restart.
    """

    _instance: ClassVar["SSMService | None"] = None
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    @classmethod
    def get_instance(cls) -> "SSMService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a parameter value from SSM Parameter Store.

        Args:
            name: Full parameter path
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMParameterNotFound: If the parameter does not exist.
            SSMServiceError: If the parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
            value: str = response["Parameter"]["Value"]
            self._cache[name] = value
            return value

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMParameterNotFound(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(
                f"Failed to retrieve SSM parameter {name}: {e}"
            ) from e

    def get_optional_parameter(self, name: str) -> str | None:
        """Like get_parameter, but a missing parameter returns None.

        Raises:
            SSMServiceError: If SSM itself fails.
        """
        try:
            return self.get_parameter(name)
        except SSMParameterNotFound:
            return None

    def clear_cache(self) -> None:
        """Clear all cached parameters."""
        self._cache.clear()
        logger.info("SSM parameter cache cleared")


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService.get_instance()
