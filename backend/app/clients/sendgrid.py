"""
SendGrid v3 mail client.

API Documentation: https://docs.sendgrid.com/api-reference/mail-send/mail-send
Authentication: Bearer token

Sends exactly once; completion mail is best effort and never retried.
"""

import httpx

from app.clients.base_client import APIError, BaseAPIClient
from app.config import settings
from app.services.errors import NotificationError


class SendGridClient(BaseAPIClient):
    """Minimal SendGrid mail/send wrapper."""

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = from_email or settings.notification_from_email
        self.from_name = from_name or settings.notification_from_name
        super().__init__(
            base_url=settings.sendgrid_base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=15.0,
            max_attempts=1,
            transport=transport,
        )

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> None:
        """Send a single message. Raises NotificationError on any failure."""
        if not self.api_key:
            raise NotificationError("SENDGRID_API_KEY not configured")

        content = [{"type": "text/plain", "value": body}]
        if html_body:
            content.append({"type": "text/html", "value": html_body})

        payload = {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": subject,
            "content": content,
        }

        try:
            await self._request("POST", "/mail/send", json=payload)
        except APIError as e:
            raise NotificationError(str(e)) from e
