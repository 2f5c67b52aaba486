"""FastAPI dependency injection providers for shared services.

Services are lazily instantiated once per process with @lru_cache.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── ReservationStore
        ├── ReservationNumberGenerator
        ├── TenantService
        └── WebhookHandler
    StripeService ──┐
    NotificationService ──┴── ReconciliationCoordinator
                                    ├── WebhookHandler
                                    └── ConfirmationPoller

Testing:
    Use reset_services() to clear cached instances between tests, or
    app.dependency_overrides to swap a provider.
"""

from functools import lru_cache

from tourbook.config import get_settings
from tourbook.services.confirmation_poller import ConfirmationPoller
from tourbook.services.dynamodb import get_dynamodb_service
from tourbook.services.notification_service import NotificationService
from tourbook.services.reconciliation import ReconciliationCoordinator
from tourbook.services.reservation_store import ReservationStore
from tourbook.services.sequence import ReservationNumberGenerator
from tourbook.services.stripe_service import get_stripe_service
from tourbook.services.tenant_service import TenantService
from tourbook.services.webhook_handler import WebhookHandler


@lru_cache
def get_reservation_store() -> ReservationStore:
    return ReservationStore(
        db=get_dynamodb_service(),
        capabilities=get_settings().write_capabilities,
    )


@lru_cache
def get_number_generator() -> ReservationNumberGenerator:
    settings = get_settings()
    return ReservationNumberGenerator(
        db=get_dynamodb_service(),
        function_name=settings.reservation_number_function,
        timeout_seconds=settings.reservation_number_timeout_seconds,
    )


@lru_cache
def get_reconciliation_coordinator() -> ReconciliationCoordinator:
    """Get the coordinator shared by both entry points."""
    return ReconciliationCoordinator(
        gateway=get_stripe_service(),
        store=get_reservation_store(),
        sequence=get_number_generator(),
        tenants=TenantService(db=get_dynamodb_service()),
        notifications=NotificationService(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    return WebhookHandler(
        coordinator=get_reconciliation_coordinator(),
        stripe_service=get_stripe_service(),
        db=get_dynamodb_service(),
    )


@lru_cache
def get_confirmation_poller() -> ConfirmationPoller:
    return ConfirmationPoller(
        coordinator=get_reconciliation_coordinator(),
        store=get_reservation_store(),
    )


def reset_services() -> None:
    """Clear all cached service instances and the settings they were built from.

    Call this in test fixtures to ensure clean state between tests.
    """
    from tourbook.config import reset_settings
    from tourbook.services.dynamodb import reset_dynamodb_service

    get_reservation_store.cache_clear()
    get_number_generator.cache_clear()
    get_reconciliation_coordinator.cache_clear()
    get_webhook_handler.cache_clear()
    get_confirmation_poller.cache_clear()
    get_stripe_service.cache_clear()

    reset_dynamodb_service()
    reset_settings()
