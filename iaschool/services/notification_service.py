# iaschool/services/notification_service.py
"""Outbound email through the templated notification API."""
import logging
from typing import Dict, Optional

import httpx

from ..core.config import notification_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the notification API rejects or drops a message"""
    pass


class EmailSender:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = notification_settings.API_URL
        self.headers = {"Content-Type": "application/json"}
        if notification_settings.API_KEY:
            self.headers["Authorization"] = f"Bearer {notification_settings.API_KEY}"
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=notification_settings.TIMEOUT, transport=self._transport)

    async def send(
        self,
        client: httpx.AsyncClient,
        to_email: str,
        subject: str,
        html: str,
        to_name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ) -> None:
        if not self.is_configured:
            logger.info(f"Notification API not configured; skipping email to {to_email}")
            return

        payload = {
            "from": {"email": notification_settings.SENDER_EMAIL, "name": notification_settings.SENDER_NAME},
            "to": [{"email": to_email, "name": to_name}],
            "subject": subject,
            "html": html,
            "metadata": metadata or {},
        }
        try:
            response = await client.post(self.api_url, headers=self.headers, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Email API timeout sending to {to_email}")
            raise EmailDeliveryError("Email service timeout")
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API HTTP error: {e.response.status_code} - {e.response.text}")
            raise EmailDeliveryError(f"Email service error: {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Email API transport error: {e}")
            raise EmailDeliveryError(str(e))


def render_template(content: str, context: Dict[str, str]) -> str:
    """Replace {{placeholders}} with context values"""
    rendered = content or ""
    for key, value in context.items():
        rendered = rendered.replace("{{" + key + "}}", value or "")
        rendered = rendered.replace("{{ " + key + " }}", value or "")
    return rendered
