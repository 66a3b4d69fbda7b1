"""
Transactional email client backed by the Resend REST API.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()
    email_id = await email_client.send_template(
        "client_invitation",
        EmailContext(
            recipient_email="client@example.com",
            recipient_name="Marie",
            coach_name="Paul",
            invitation_url="https://app.example.com/accept-invitation?token=...",
        ),
    )
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from libs.common.config import get_settings
from libs.common.emails.templates import EmailContext, render
from libs.common.errors import ProviderError, TransportError
from libs.common.logging import get_logger

logger = get_logger(__name__)

RESEND_BASE_URL = "https://api.resend.com"


@dataclass
class SentEmail:
    id: str
    to_email: str
    subject: str


class EmailClient:
    """Async client for the Resend ``/emails`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        if api_key is None or from_email is None:
            settings.require("RESEND_API_KEY", "FROM_EMAIL")
        self.api_key = api_key or settings.RESEND_API_KEY
        self.from_email = from_email or settings.FROM_EMAIL
        self.from_name = from_name or settings.FROM_NAME
        self.timeout = 30.0
        self._transport = transport

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email

    async def _request(self, method: str, endpoint: str, json_data: dict) -> dict:
        try:
            async with httpx.AsyncClient(
                base_url=RESEND_BASE_URL,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    endpoint,
                    json=json_data,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TransportError as exc:
            logger.error(f"Resend unreachable: {exc}")
            raise TransportError(f"Email provider unreachable: {exc}") from exc

        try:
            data: dict[str, Any] = response.json()
        except ValueError:
            data = {"message": response.text}

        if not response.is_success:
            logger.error(f"Resend API error: {response.status_code} - {data}")
            raise ProviderError(
                data.get("message", "Unknown Resend error"),
                provider="resend",
                status_code=response.status_code,
                response_data=data,
            )
        return data

    async def send(
        self,
        to_email: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> SentEmail:
        payload: dict[str, Any] = {
            "from": self.sender,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        data = await self._request("POST", "/emails", payload)
        logger.info(
            f"Email sent to {to_email}",
            extra={"extra_fields": {"email_id": data.get("id"), "subject": subject}},
        )
        return SentEmail(id=data.get("id", ""), to_email=to_email, subject=subject)

    async def send_template(self, template_type: str, ctx: EmailContext) -> SentEmail:
        rendered = render(template_type, ctx)
        return await self.send(
            ctx.recipient_email, rendered.subject, rendered.html, rendered.text
        )


_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the process-wide EmailClient."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
