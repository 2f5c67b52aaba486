"""Runtime configuration for payment reconciliation.

All settings come from environment variables and are read once per process.
Secrets (Stripe keys, webhook secrets) are NOT configured here; they are
fetched from SSM Parameter Store by the services that need them.

Usage:
    from tourbook.config import get_settings

    settings = get_settings()
    settings.confirmation_initial_delay_seconds
"""

import logging
import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# Reservation attributes that deployments may turn off. Every other column,
# payment_reference in particular, is always written.
OPTIONAL_RESERVATION_COLUMNS: frozenset[str] = frozenset(
    {
        "custom_location_google_maps",
        "customer_whatsapp",
        "hotel_name",
        "room_number",
        "notes",
    }
)


class ConfigurationError(Exception):
    """Raised when the environment describes an unusable configuration."""


class ReservationWriteCapabilities(BaseModel):
    """Which optional reservation columns this deployment writes.

    Resolved once at startup from RESERVATION_DISABLED_COLUMNS. A disabled
    column is dropped from every insert and logged once when resolved, so
    missing data is always traceable to configuration.
    """

    model_config = ConfigDict(frozen=True)

    disabled_columns: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_setting(cls, raw: str | None) -> "ReservationWriteCapabilities":
        """Parse a comma-separated column list.

        Raises:
            ConfigurationError: If a listed column is not optional.
        """
        names = {part.strip() for part in (raw or "").split(",") if part.strip()}
        unknown = names - OPTIONAL_RESERVATION_COLUMNS
        if unknown:
            raise ConfigurationError(
                "RESERVATION_DISABLED_COLUMNS lists non-optional columns: "
                + ", ".join(sorted(unknown))
            )
        for name in sorted(names):
            logger.warning(
                "Reservation column %s disabled by RESERVATION_DISABLED_COLUMNS; "
                "values for it will not be stored",
                name,
            )
        return cls(disabled_columns=frozenset(names))

    def filter_item(self, item: dict) -> dict:
        """Drop disabled columns from a reservation item."""
        return {k: v for k, v in item.items() if k not in self.disabled_columns}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ReconciliationSettings(BaseModel):
    """Settings for the reconciliation services and entry points."""

    model_config = ConfigDict(frozen=True)

    environment: str = "dev"
    table_prefix: str = "booking-dev"
    reservation_number_function: str | None = None
    reservation_number_timeout_seconds: float = Field(default=3.0, gt=0)
    confirmation_initial_delay_seconds: float = Field(default=2.0, ge=0)
    confirmation_retry_interval_seconds: float = Field(default=1.0, ge=0)
    confirmation_max_checks: int = Field(default=3, ge=1)
    confirmation_deadline_seconds: float = Field(default=5.0, ge=0)
    webhook_reject_invalid_signature: bool = False
    ses_from_email: str | None = None
    ses_region: str | None = None
    write_capabilities: ReservationWriteCapabilities = Field(
        default_factory=ReservationWriteCapabilities
    )

    @classmethod
    def from_env(cls) -> "ReconciliationSettings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If RESERVATION_DISABLED_COLUMNS is invalid.
        """
        environment = os.environ.get("ENVIRONMENT", "dev")
        function_name = os.environ.get(
            "RESERVATION_NUMBER_FUNCTION",
            f"booking-{environment}-generate-reservation-number",
        )
        return cls(
            environment=environment,
            table_prefix=os.environ.get("DYNAMODB_TABLE_PREFIX", f"booking-{environment}"),
            reservation_number_function=function_name or None,
            reservation_number_timeout_seconds=float(
                os.environ.get("RESERVATION_NUMBER_TIMEOUT_SECONDS", "3")
            ),
            confirmation_initial_delay_seconds=float(
                os.environ.get("CONFIRMATION_INITIAL_DELAY_SECONDS", "2")
            ),
            confirmation_retry_interval_seconds=float(
                os.environ.get("CONFIRMATION_RETRY_INTERVAL_SECONDS", "1")
            ),
            confirmation_max_checks=int(os.environ.get("CONFIRMATION_MAX_CHECKS", "3")),
            confirmation_deadline_seconds=float(
                os.environ.get("CONFIRMATION_DEADLINE_SECONDS", "5")
            ),
            webhook_reject_invalid_signature=_env_bool("WEBHOOK_REJECT_INVALID_SIGNATURE"),
            ses_from_email=os.environ.get("SES_FROM_EMAIL") or None,
            ses_region=os.environ.get("SES_REGION") or None,
            write_capabilities=ReservationWriteCapabilities.from_setting(
                os.environ.get("RESERVATION_DISABLED_COLUMNS")
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> ReconciliationSettings:
    """Get the process-wide settings (read from the environment once)."""
    return ReconciliationSettings.from_env()


def reset_settings() -> None:
    """Forget cached settings (for testing only)."""
    get_settings.cache_clear()
