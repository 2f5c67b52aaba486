"""Booking notification e-mails via Amazon SES.

Every send is best-effort: failures are logged and swallowed so that a
stored reservation is never affected by mail delivery problems.
"""

import html
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tourbook.config import get_settings
from tourbook.models.reservation import Reservation
from tourbook.models.tenant import Tenant

logger = logging.getLogger(__name__)


def format_amount(amount_cents: int, currency: str) -> str:
    """Format minor units for display, e.g. (150000, "thb") -> "1,500.00 THB"."""
    return f"{amount_cents / 100:,.2f} {currency.upper()}"


class NotificationService:
    """Sends customer confirmations and operator alerts."""

    def __init__(
        self,
        from_email: str | None = None,
        region: str | None = None,
        ses_client: Any | None = None,
    ) -> None:
        settings = get_settings()
        self.from_email = from_email or settings.ses_from_email
        self._region = region or settings.ses_region
        self._client = ses_client

    def _get_client(self) -> Any:
        if self._client is None:
            if self._region:
                self._client = boto3.client("ses", region_name=self._region)
            else:
                self._client = boto3.client("ses")
        return self._client

    def _sender(self, tenant: Tenant | None) -> str | None:
        if not self.from_email:
            return None
        if tenant and tenant.email_from_name:
            return f"{tenant.email_from_name} <{self.from_email}>"
        return self.from_email

    def _send(self, sender: str, recipient: str, subject: str, text: str, html_body: str) -> bool:
        try:
            self._get_client().send_email(
                Source=sender,
                Destination={"ToAddresses": [recipient]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": text, "Charset": "UTF-8"},
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                    },
                },
            )
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to send '%s' to %s: %s", subject, recipient, e)
            return False

    def send_confirmation(self, reservation: Reservation, tenant: Tenant | None) -> int:
        """Send the booking confirmation to the customer.

        Returns:
            Number of messages sent (0 or 1).
        """
        sender = self._sender(tenant)
        if sender is None:
            logger.error(
                "SES_FROM_EMAIL not configured; confirmation for %s not sent",
                reservation.number,
            )
            return 0

        operator = tenant.display_name if tenant else "Tourbook"
        subject = f"Booking Confirmed - {reservation.number}"
        lines = [
            f"Dear {reservation.customer_name},",
            "",
            f"Thank you for booking with {operator}.",
            "",
            f"Booking number: {reservation.number}",
            f"Tour: {reservation.program_name or reservation.program_id}",
            f"Date: {reservation.activity_date.isoformat()}",
            f"Guests: {reservation.adults} adults, {reservation.children} children, "
            f"{reservation.infants} infants",
        ]
        if reservation.is_come_direct:
            lines.append("Pickup: you will come directly to the meeting point")
        elif reservation.pickup_location:
            lines.append(f"Pickup: {reservation.pickup_location}")
        lines.append(f"Paid: {format_amount(reservation.amount_cents, reservation.currency)}")
        text = "\n".join(lines)

        html_body = self._render_html(lines, tenant)
        sent = self._send(sender, reservation.customer_email, subject, text, html_body)
        if sent:
            logger.info(
                "Confirmation for %s sent to %s",
                reservation.number,
                reservation.customer_email,
            )
        return int(sent)

    def send_operational_alerts(self, reservation: Reservation, tenant: Tenant | None) -> int:
        """Notify the operator's configured addresses about a new booking.

        Returns:
            Number of messages sent.
        """
        recipients = tenant.notification_emails if tenant else []
        if not recipients:
            logger.info("No booking notification emails configured for %s", reservation.tenant_id)
            return 0

        sender = self._sender(tenant)
        if sender is None:
            logger.error(
                "SES_FROM_EMAIL not configured; alerts for %s not sent",
                reservation.number,
            )
            return 0

        subject = f"New Booking: {reservation.number} - {reservation.customer_name}"
        lines = [
            f"Booking number: {reservation.number}",
            f"Customer: {reservation.customer_name}",
            f"Email: {reservation.customer_email}",
        ]
        if reservation.customer_whatsapp:
            lines.append(f"WhatsApp: {reservation.customer_whatsapp}")
        lines += [
            f"Tour: {reservation.program_name or reservation.program_id}",
            f"Date: {reservation.activity_date.isoformat()}",
            f"Guests: {reservation.total_guests} "
            f"({reservation.adults}A / {reservation.children}C / {reservation.infants}I)",
            f"Pickup: {'Come direct' if reservation.is_come_direct else reservation.pickup_location or '-'}",
        ]
        if reservation.room_number:
            lines.append(f"Room: {reservation.room_number}")
        if reservation.notes:
            lines.append(f"Notes: {reservation.notes}")
        lines.append(f"Paid: {format_amount(reservation.amount_cents, reservation.currency)}")
        text = "\n".join(lines)
        html_body = self._render_html(lines, tenant)

        sent = 0
        for recipient in recipients:
            if self._send(sender, recipient, subject, text, html_body):
                logger.info("Booking alert for %s sent to %s", reservation.number, recipient)
                sent += 1
        return sent

    @staticmethod
    def _render_html(lines: list[str], tenant: Tenant | None) -> str:
        parts = ["<html><body style=\"font-family: sans-serif;\">"]
        if tenant and tenant.logo_url:
            parts.append(
                f"<img src=\"{html.escape(tenant.logo_url)}\" alt=\"{html.escape(tenant.display_name)}\" "
                "style=\"max-height: 60px;\"/>"
            )
        parts.extend(f"<p>{html.escape(line)}</p>" if line else "<br/>" for line in lines)
        parts.append("</body></html>")
        return "\n".join(parts)
