"""Backend services for Tourbook payment reconciliation."""

from .confirmation_poller import ConfirmationPoller, PendingConfirmation
from .dynamodb import DynamoDBService, get_dynamodb_service
from .notification_service import NotificationService
from .reconciliation import ReconciliationCoordinator
from .reservation_store import DuplicatePaymentReferenceError, ReservationStore
from .sequence import ReservationNumberGenerator, SequenceGenerationError
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, StripeServiceError, get_stripe_service
from .tenant_service import TenantService
from .webhook_handler import WebhookHandler, WebhookOutcome

__all__ = [
    "ConfirmationPoller",
    "DuplicatePaymentReferenceError",
    "DynamoDBService",
    "get_dynamodb_service",
    "NotificationService",
    "PendingConfirmation",
    "ReconciliationCoordinator",
    "ReservationNumberGenerator",
    "ReservationStore",
    "SequenceGenerationError",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "get_stripe_service",
    "TenantService",
    "WebhookHandler",
    "WebhookOutcome",
]
