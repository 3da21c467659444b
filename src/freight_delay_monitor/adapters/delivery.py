"""Notification delivery over email.

Business semantic: "we attempted to tell the customer", not "the customer
received it". Delivery failures are logged and swallowed; the record is
returned unchanged either way.
"""

from __future__ import annotations

import html
import logging
from typing import Protocol

import requests

from freight_delay_monitor.errors import DeliveryFailed
from freight_delay_monitor.workflow.models import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Attempts delivery and returns the record unchanged. Must not raise."""

    def deliver(self, record: NotificationRecord) -> NotificationRecord: ...


class Mailer(Protocol):
    def send(self, *, to: str, subject: str, text: str, html_body: str) -> None: ...


class SendGridMailer:
    """Minimal SendGrid v3 mail client."""

    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        base_url: str = "https://api.sendgrid.com",
        session: requests.Session | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("SendGrid API key is required")

        self._from_email = from_email
        self._url = f"{base_url.rstrip('/')}/v3/mail/send"
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": "freight-delay-monitor",
            }
        )

    def send(self, *, to: str, subject: str, text: str, html_body: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._from_email},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html_body},
            ],
        }
        try:
            resp = self._session.post(self._url, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise DeliveryFailed(f"SendGrid request failed: {e}") from e
        if resp.status_code >= 300:
            raise DeliveryFailed(f"SendGrid rejected the message: HTTP {resp.status_code}")

    def close(self) -> None:
        self._session.close()


def email_subject(record: NotificationRecord) -> str:
    return f"🚚 Delivery Delay Alert: {record.route}"


def render_email_html(record: NotificationRecord) -> str:
    e = html.escape
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">🚚 Freight Delivery Delay Alert</h2>
  <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 20px 0;">
    <p style="margin: 0 0 15px 0; font-size: 16px;"><strong>{e(record.message)}</strong></p>
  </div>
  <div style="background-color: #e9ecef; padding: 15px; border-radius: 6px; margin: 15px 0;">
    <h3 style="margin: 0 0 10px 0; color: #495057;">Route Details</h3>
    <p style="margin: 5px 0;"><strong>Route:</strong> {e(record.route)}</p>
    <p style="margin: 5px 0;"><strong>Delay:</strong> {record.delay_minutes} minutes</p>
    <p style="margin: 5px 0;"><strong>Distance:</strong> {record.distance_km:.1f} km</p>
    <p style="margin: 5px 0;"><strong>Traffic Level:</strong> {e(record.traffic_level)}</p>
    <p style="margin: 5px 0;"><strong>Estimated Travel Time:</strong> {round(record.estimated_time)} minutes</p>
  </div>
  <div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #dee2e6;">
    <p style="color: #6c757d; font-size: 14px; margin: 0;">
      This is an automated notification from your freight monitoring system.
    </p>
  </div>
</div>
"""


class EmailDelivery:
    """Deliver notification records by email to a single configured recipient.

    `mailer=None` means no key is configured; every send is reported as skipped.
    """

    def __init__(self, *, mailer: Mailer | None, recipient: str) -> None:
        self._mailer = mailer
        self._recipient = recipient

    def deliver(self, record: NotificationRecord) -> NotificationRecord:
        logger.info("Sending notification", extra={"route": record.route})
        try:
            if self._mailer is None:
                raise DeliveryFailed("SENDGRID_API_KEY is not set")
            self._mailer.send(
                to=self._recipient,
                subject=email_subject(record),
                text=record.message,
                html_body=render_email_html(record),
            )
        except Exception:
            logger.exception(
                "Email notification skipped or failed",
                extra={"route": record.route, "recipient": self._recipient},
            )
            return record

        logger.info(
            "Email notification sent",
            extra={"route": record.route, "recipient": self._recipient},
        )
        return record
