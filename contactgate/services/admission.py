"""Admission pipeline: rate limit, validate, then deliver."""

from __future__ import annotations

import html
import logging
import time
from dataclasses import dataclass
from datetime import datetime

from starlette.concurrency import run_in_threadpool

from contactgate.config import Settings, settings
from contactgate.observability.metrics import DELIVERY_LATENCY, record_admission
from contactgate.schemas.contact import ErrorKind
from contactgate.security.bot_detection import (
    SubmissionPolicy,
    SubmissionRecord,
    SubmissionValidator,
)
from contactgate.security.rate_limit import RateLimiter
from contactgate.security.rate_store import MemoryRateStore, RateStore
from contactgate.services.mailer import Mailer, OutboundMessage, build_mailer
from contactgate.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionOutcome:
    accepted: bool
    kind: ErrorKind | None = None
    receipt_id: str | None = None
    reset_at: datetime | None = None
    remaining: int | None = None
    # Instant the limiter decided at; wait hints are relative to it
    decided_at: datetime | None = None


def compose_message(
    submission: SubmissionRecord,
    identity: str,
    now: datetime,
    config: Settings = settings,
) -> OutboundMessage:
    """Build the notification email for an accepted submission.

    Every user-supplied field is HTML-escaped; message newlines become
    ``<br>``. Whitespace runs in the subject header collapse to one space.
    """
    name = html.escape(submission.name.strip())
    email = html.escape(submission.email.strip())
    subject = html.escape(submission.subject.strip())
    message = html.escape(submission.message.strip()).replace("\n", "<br>")
    sent_at = now.strftime("%Y-%m-%d %H:%M:%S UTC")
    # Header lines cannot carry CR/LF
    subject_line = " ".join(submission.subject.split())

    body = f"""
<h2>New message from your portfolio</h2>
<p><strong>Name:</strong> {name}</p>
<p><strong>Email:</strong> {email}</p>
<p><strong>Subject:</strong> {subject}</p>
<hr />
<h3>Message:</h3>
<p>{message}</p>
<hr />
<p style="color: #666; font-size: 12px;">
    IP: {html.escape(identity)}<br>
    Date: {sent_at}
</p>
"""
    return OutboundMessage(
        from_addr=f"{config.email_from_name} <{config.email_from_addr}>",
        to_addr=config.email_to_addr,
        subject=f"{config.email_subject_tag} {subject_line}",
        html=body,
        reply_to=submission.email.strip(),
    )


class AdmissionPipeline:
    """Authoritative server-side gate for contact submissions.

    Runs the rate limiter first, then the validator, and only hands
    accepted submissions to the mailer. Attempts count against the quota
    even when validation later rejects them.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        validator: SubmissionValidator,
        mailer: Mailer,
        *,
        config: Settings = settings,
        clock: Clock = utc_now,
    ) -> None:
        self.limiter = limiter
        self.validator = validator
        self.mailer = mailer
        self.config = config
        self.clock = clock

    async def handle(
        self,
        submission: SubmissionRecord,
        identity: str,
        now: datetime | None = None,
    ) -> AdmissionOutcome:
        now = now or self.clock()

        # Store I/O may block; the mailer call below runs outside the lock
        decision = await run_in_threadpool(
            self.limiter.check_and_record, identity, now
        )
        if not decision.allowed:
            logger.info("Rejected submission from %s: rate limited", identity)
            record_admission(ErrorKind.RATE_LIMITED.value)
            return AdmissionOutcome(
                accepted=False,
                kind=ErrorKind.RATE_LIMITED,
                reset_at=decision.reset_at,
                remaining=0,
                decided_at=now,
            )

        result = self.validator.validate(submission, now)
        if not result.accepted:
            logger.info(
                "Rejected submission from %s: %s", identity, result.reason.value
            )
            record_admission(result.reason.value)
            return AdmissionOutcome(accepted=False, kind=result.reason)

        message = compose_message(submission, identity, now, self.config)
        start = time.perf_counter()
        delivery = await self.mailer.send(message)
        DELIVERY_LATENCY.observe(time.perf_counter() - start)

        if not delivery.ok:
            logger.error("Email delivery failed: %s", delivery.error)
            record_admission(ErrorKind.DELIVERY_FAILED.value)
            return AdmissionOutcome(accepted=False, kind=ErrorKind.DELIVERY_FAILED)

        logger.info(
            "Contact submission from %s delivered (id=%s)", identity, delivery.id
        )
        record_admission("accepted")
        return AdmissionOutcome(
            accepted=True,
            receipt_id=delivery.id,
            remaining=decision.remaining,
        )


def build_pipeline(
    config: Settings = settings,
    store: RateStore | None = None,
    mailer: Mailer | None = None,
    clock: Clock = utc_now,
) -> AdmissionPipeline:
    """Wire a pipeline from settings; the caller owns the store's lifecycle."""
    limiter = RateLimiter(
        store if store is not None else MemoryRateStore(),
        window=config.rate_limit_window,
        max_per_window=config.rate_limit_max_requests,
        clock=clock,
    )
    validator = SubmissionValidator(SubmissionPolicy.from_settings(config))
    return AdmissionPipeline(
        limiter,
        validator,
        mailer if mailer is not None else build_mailer(config),
        config=config,
        clock=clock,
    )
