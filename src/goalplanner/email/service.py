"""Outbound email: provider selection, per-recipient rate limiting and template sends."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING

import aiosmtplib
import httpx
import structlog

from goalplanner.config import get_settings
from goalplanner.email.templates import render_template

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()


class EmailDeliveryError(Exception):
    """The provider rejected or failed to accept a message."""


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    text_body: str


class EmailProvider(ABC):
    """A transport that hands one message to a mail system."""

    name: str

    @abstractmethod
    async def deliver(self, message: OutgoingEmail) -> None:
        """Deliver ``message`` or raise EmailDeliveryError."""


class SMTPProvider(EmailProvider):
    name = "smtp"

    def __init__(self, host: str, port: int, username: str, password: str, sender: str, use_tls: bool = True) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls

    def _build(self, message: OutgoingEmail) -> EmailMessage:
        mime = EmailMessage()
        mime["From"] = self.sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content(message.text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    async def deliver(self, message: OutgoingEmail) -> None:
        try:
            await aiosmtplib.send(
                self._build(message),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(str(e)) from e


class ResendProvider(EmailProvider):
    name = "resend"
    endpoint = "https://api.resend.com/emails"

    def __init__(self, api_key: str, sender: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    async def deliver(self, message: OutgoingEmail) -> None:
        payload = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.text_body,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmailDeliveryError(str(e)) from e


def provider_from_settings() -> EmailProvider:
    """Build the provider named by ``email_provider``."""
    settings = get_settings()
    sender = f"{settings.email_from_name} <{settings.email_from_address}>"
    kind = settings.email_provider.lower()
    if kind == "smtp":
        return SMTPProvider(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_username,
            settings.smtp_password,
            sender,
            use_tls=settings.smtp_use_tls,
        )
    if kind == "resend":
        return ResendProvider(settings.resend_api_key, sender)
    msg = f"Unsupported email provider: {kind}"
    raise ValueError(msg)


class EmailService:
    """Sends rendered templates, at most ``RATE_LIMIT_MAX`` per recipient per hour when Redis is available."""

    RATE_LIMIT_MAX = 5
    RATE_LIMIT_WINDOW = 3600

    def __init__(self, provider: EmailProvider | None = None, redis: Redis | None = None) -> None:
        self.provider = provider or provider_from_settings()
        self._redis = redis

    async def _within_rate_limit(self, address: str) -> bool:
        if self._redis is None:
            return True
        key = "email_rate:" + hashlib.sha256(address.lower().encode()).hexdigest()
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return count <= self.RATE_LIMIT_MAX

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Returns False when rate limited or when delivery fails."""
        if not await self._within_rate_limit(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        try:
            await self.provider.deliver(OutgoingEmail(to, subject, html_body, text_body))
        except EmailDeliveryError as e:
            logger.error("email_send_failed", to=to, provider=self.provider.name, error=str(e))
            return False
        logger.info("email_sent", to=to, subject=subject, provider=self.provider.name)
        return True

    async def send_template(self, to: str, template_name: str, context: dict[str, str | None]) -> bool:
        """
        Render ``template_name`` with ``context`` and send it.

        Raises:
            ValueError: If the template name is unknown.
        """
        subject, html_body, text_body = render_template(template_name, context, get_settings().frontend_base_url)
        return await self.send_email(to, subject, html_body, text_body)


_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    """Get or create the process-wide email service."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    global _email_service  # noqa: PLW0603
    _email_service = None
