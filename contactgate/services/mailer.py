"""Outbound email delivery for accepted contact submissions."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Protocol

import httpx

from contactgate.config import Settings, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMessage:
    from_addr: str
    to_addr: str
    subject: str
    html: str
    reply_to: str | None = None


@dataclass(frozen=True)
class DeliveryResult:
    """Receipt id on success, error description otherwise."""

    id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Mailer(Protocol):
    async def send(self, message: OutboundMessage) -> DeliveryResult: ...


class ResendMailer:
    """Delivers through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        api_url: str = "https://api.resend.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        if not self.api_key:
            return DeliveryResult(error="Resend API key is not configured")

        payload = {
            "from": message.from_addr,
            "to": [message.to_addr],
            "subject": message.subject,
            "html": message.html,
        }
        if message.reply_to:
            payload["reply_to"] = message.reply_to

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    f"{self.api_url}/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            return DeliveryResult(error=f"Resend request failed: {exc!r}")

        if resp.is_error:
            return DeliveryResult(
                error=f"Resend returned {resp.status_code}: {resp.text[:500]}"
            )
        try:
            receipt = resp.json().get("id")
        except ValueError:
            return DeliveryResult(error="Resend returned a non-JSON response")
        return DeliveryResult(id=receipt)


class SmtpMailer:
    """Delivers over SMTP, in a worker thread so the event loop stays free."""

    def __init__(self, config: Settings) -> None:
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.passwd = config.smtp_pass
        self.use_ssl = config.smtp_ssl
        self.use_starttls = config.smtp_starttls
        self.timeout = config.email_timeout_seconds

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        try:
            receipt = await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            # ValueError: header value the email package refuses to encode
            return DeliveryResult(error=f"SMTP delivery failed: {exc!r}")
        return DeliveryResult(id=receipt)

    def _build(self, message: OutboundMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = message.from_addr
        msg["To"] = message.to_addr
        if message.reply_to:
            msg["Reply-To"] = message.reply_to
        msg["Subject"] = message.subject
        msg["Message-ID"] = make_msgid(domain="contactgate")
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(message.html, subtype="html")
        return msg

    def _send_sync(self, message: OutboundMessage) -> str:
        msg = self._build(message)

        if self.use_ssl:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(
                self.host, self.port, context=context, timeout=self.timeout
            ) as smtp:
                if self.user:
                    smtp.login(self.user, self.passwd)
                smtp.send_message(msg)
            return msg["Message-ID"]

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_starttls:
                context = ssl.create_default_context()
                smtp.starttls(context=context)
            if self.user:
                smtp.login(self.user, self.passwd)
            smtp.send_message(msg)
        return msg["Message-ID"]


class DisabledMailer:
    async def send(self, message: OutboundMessage) -> DeliveryResult:
        # no-op in CI/dev when EMAIL_ENABLED=false
        logger.info("Email disabled, dropping message %r", message.subject)
        return DeliveryResult()


def build_mailer(config: Settings = settings) -> Mailer:
    if not config.email_enabled:
        return DisabledMailer()
    if config.email_backend == "smtp":
        return SmtpMailer(config)
    return ResendMailer(
        config.resend_api_key,
        api_url=config.resend_api_url,
        timeout=config.email_timeout_seconds,
    )
