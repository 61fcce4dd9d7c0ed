"""Pydantic schemas and error taxonomy for the contact endpoint."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from contactgate.utils.clock import from_epoch_millis

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Reasons a submission can be refused."""

    MISSING_FIELDS = "missing-fields"
    BOT_HONEYPOT = "bot-honeypot"
    TOO_FAST = "too-fast"
    SESSION_EXPIRED = "session-expired"
    INVALID_EMAIL = "invalid-email"
    MESSAGE_TOO_SHORT = "message-too-short"
    CONTENT_SUSPICIOUS = "content-suspicious"
    RATE_LIMITED = "rate-limited"
    DELIVERY_FAILED = "delivery-failed"
    INTERNAL_ERROR = "internal-error"
    METHOD_NOT_ALLOWED = "method-not-allowed"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_FIELDS: "All fields are required.",
    ErrorKind.BOT_HONEYPOT: "Submission rejected.",
    ErrorKind.TOO_FAST: "Please take the time to fill in the form properly.",
    ErrorKind.SESSION_EXPIRED: "Your session has expired. Please refresh the page.",
    ErrorKind.INVALID_EMAIL: "Invalid email format.",
    ErrorKind.MESSAGE_TOO_SHORT: "The message must contain at least 3 words.",
    ErrorKind.CONTENT_SUSPICIOUS: "Suspicious message detected.",
    ErrorKind.RATE_LIMITED: "Too many attempts. Please try again later.",
    ErrorKind.DELIVERY_FAILED: "Error while sending the email.",
    ErrorKind.INTERNAL_ERROR: "Internal server error.",
    ErrorKind.METHOD_NOT_ALLOWED: "Method not allowed.",
}

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.DELIVERY_FAILED: 500,
    ErrorKind.INTERNAL_ERROR: 500,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
}


def status_for(kind: ErrorKind) -> int:
    """HTTP status for a refusal; every validation kind maps to 400."""
    return ERROR_STATUS.get(kind, 400)


def parse_epoch_millis(raw: str | int | None) -> datetime | None:
    """Convert an epoch-millis string to an aware UTC datetime.

    Unparseable input yields ``None`` so the timing checks are skipped.
    """
    if raw is None:
        return None
    try:
        millis = int(str(raw).strip())
    except ValueError:
        logger.debug("Ignoring unparseable submissionTime %r", raw)
        return None
    try:
        return from_epoch_millis(millis)
    except OverflowError:
        logger.debug("Ignoring out-of-range submissionTime %r", raw)
        return None


class ContactSubmission(BaseModel):
    """Raw JSON body posted by the contact form.

    Fields default to empty so that blank or absent values reach the
    validator and are reported as ``missing-fields`` instead of a schema
    error.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""
    honeypot: str | None = None
    submission_time: str | int | None = Field(default=None, alias="submissionTime")

    @property
    def form_rendered_at(self) -> datetime | None:
        return parse_epoch_millis(self.submission_time)


class ContactResponse(BaseModel):
    """Schema for contact endpoint responses."""

    success: bool
    error: str | None = None
    message: str | None = None
    id: str | None = None
    code: ErrorKind | None = None

    @classmethod
    def refused(cls, kind: ErrorKind, error: str | None = None) -> ContactResponse:
        return cls(success=False, error=error or ERROR_MESSAGES[kind], code=kind)
