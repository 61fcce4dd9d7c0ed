"""HTTP client for the contact endpoint, fronted by the advisory pre-gate."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from contactgate.client.pregate import ClientPreGate
from contactgate.schemas.contact import ContactResponse, ErrorKind

logger = logging.getLogger(__name__)

SEND_EMAIL_PATH = "/api/send-email"


class ContactFormClient:
    """Submit contact forms to a contact gate server.

    Local denials (quota spent, form filled too fast or too slowly) are
    returned without touching the network.
    """

    def __init__(
        self,
        base_url: str,
        pregate: ClientPreGate | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.pregate = pregate or ClientPreGate()
        self.timeout = timeout
        self._transport = transport

    async def submit(
        self,
        *,
        name: str,
        email: str,
        subject: str,
        message: str,
        started_at: str | None = None,
        honeypot: str = "",
    ) -> ContactResponse:
        decision = self.pregate.check()
        if not decision.allowed:
            wait = self.pregate.format_remaining_time(decision.reset_at)
            return ContactResponse.refused(
                ErrorKind.RATE_LIMITED,
                f"Too many attempts. Please try again in {wait}.",
            )

        if started_at is not None:
            timing = self.pregate.validate_timing(started_at)
            if not timing.valid:
                return ContactResponse.refused(timing.reason)

        payload: dict[str, Any] = {
            "name": name,
            "email": email,
            "subject": subject,
            "message": message,
            "honeypot": honeypot,
        }
        if started_at is not None:
            payload["submissionTime"] = started_at

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(SEND_EMAIL_PATH, json=payload)
        except httpx.HTTPError:
            logger.warning("Contact endpoint unreachable at %s", self.base_url)
            return ContactResponse.refused(ErrorKind.INTERNAL_ERROR)

        try:
            return ContactResponse.model_validate(resp.json())
        except (ValueError, ValidationError):
            logger.warning(
                "Unexpected contact endpoint response (status %s)", resp.status_code
            )
            return ContactResponse.refused(ErrorKind.INTERNAL_ERROR)
