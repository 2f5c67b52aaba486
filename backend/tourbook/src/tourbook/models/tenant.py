"""Tenant (tour operator) model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Tenant(BaseModel):
    """A tour operator using the platform.

    Only the attributes reconciliation reads are modelled; dashboard
    settings live in the same row but are ignored here.
    """

    model_config = ConfigDict(strict=False)

    tenant_id: str
    name: str = ""
    initials: str | None = None
    booking_sequence: int = Field(default=0, ge=0)
    notification_emails: list[str] = Field(default_factory=list)
    email_from_name: str | None = None
    logo_url: str | None = None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "Tenant":
        data = dict(item)
        if "booking_sequence" in data:
            data["booking_sequence"] = int(data["booking_sequence"])
        return cls.model_validate(data)

    @property
    def display_name(self) -> str:
        return self.name or "Tourbook"
