"""Tenant directory lookups."""

import logging
from typing import TYPE_CHECKING

from tourbook.models.tenant import Tenant

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = logging.getLogger(__name__)


class TenantService:
    """Read access to the tenants table."""

    TENANTS_TABLE = "tenants"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_tenant(self, tenant_id: str) -> Tenant | None:
        """Get a tenant by ID, or None if it does not exist."""
        item = self.db.get_item(self.TENANTS_TABLE, {"tenant_id": tenant_id})
        if not item:
            logger.warning("Tenant %s not found", tenant_id)
            return None
        return Tenant.from_item(item)
