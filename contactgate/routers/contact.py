"""Contact form endpoint."""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from contactgate.schemas.contact import (
    ERROR_MESSAGES,
    ContactResponse,
    ContactSubmission,
    ErrorKind,
    status_for,
)
from contactgate.security.bot_detection import SubmissionRecord
from contactgate.security.rate_limit import format_remaining_time
from contactgate.services.admission import AdmissionOutcome, AdmissionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["contact"])


def get_client_ip(request: Request) -> str:
    """Resolve the identity used for rate limiting."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # Take the first IP in the chain
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def get_pipeline(request: Request) -> AdmissionPipeline:
    return request.app.state.pipeline


def _to_record(submission: ContactSubmission) -> SubmissionRecord:
    return SubmissionRecord(
        name=submission.name,
        email=submission.email,
        subject=submission.subject,
        message=submission.message,
        honeypot=submission.honeypot,
        form_rendered_at=submission.form_rendered_at,
    )


def refusal_response(
    kind: ErrorKind, error: str | None = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    body = ContactResponse.refused(kind, error)
    return JSONResponse(
        body.model_dump(mode="json", exclude_none=True),
        status_code=status_for(kind),
        headers=headers,
    )


def _rate_limited_response(outcome: AdmissionOutcome) -> JSONResponse:
    now = outcome.decided_at
    reset_at = outcome.reset_at or now
    wait = format_remaining_time(reset_at, now)
    retry_after = max(0, math.ceil((reset_at - now).total_seconds()))
    return refusal_response(
        ErrorKind.RATE_LIMITED,
        f"Too many attempts. Please try again in {wait}.",
        headers={"Retry-After": str(retry_after)},
    )


@router.post("/send-email", response_model=ContactResponse)
async def send_email(
    submission: ContactSubmission,
    request: Request,
    pipeline: AdmissionPipeline = Depends(get_pipeline),
):
    """Admit a contact submission and relay it by email.

    Status codes: 200 accepted, 400 validation failure, 429 rate limited,
    500 delivery or internal failure.
    """
    identity = get_client_ip(request)
    try:
        outcome = await pipeline.handle(_to_record(submission), identity)
    except Exception:
        logger.exception("Contact submission from %s failed", identity)
        return refusal_response(ErrorKind.INTERNAL_ERROR)

    if outcome.accepted:
        body = ContactResponse(
            success=True,
            message="Email sent successfully.",
            id=outcome.receipt_id,
        )
        return JSONResponse(
            body.model_dump(mode="json", exclude_none=True),
            status_code=status.HTTP_200_OK,
        )

    if outcome.kind is ErrorKind.RATE_LIMITED:
        return _rate_limited_response(outcome)
    return refusal_response(outcome.kind, ERROR_MESSAGES[outcome.kind])
