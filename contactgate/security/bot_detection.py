"""Field validation and anti-bot heuristics for contact submissions.

Checks run in a fixed order and the first failure decides the reported
reason:

1. required fields
2. honeypot
3. timing, too fast
4. timing, too slow
5. email shape
6. minimum word count
7. vowel ratio

The vowel-ratio thresholds are empirical and only meaningful for
Latin-alphabet text; messages in other scripts have no a-z letters and
skip the check, while short mixed-script messages may be misjudged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from contactgate.config import Settings
from contactgate.schemas.contact import ErrorKind

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
VOWELS = frozenset("aeiouy")
_LETTER = re.compile(r"[a-z]")


@dataclass(frozen=True)
class SubmissionRecord:
    name: str
    email: str
    subject: str
    message: str
    honeypot: str | None = None
    form_rendered_at: datetime | None = None


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: ErrorKind | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: ErrorKind) -> ValidationResult:
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class TimingCheck:
    valid: bool
    elapsed: timedelta
    reason: ErrorKind | None = None


@dataclass(frozen=True)
class SubmissionPolicy:
    """Thresholds applied by :class:`SubmissionValidator`."""

    min_submission_time: timedelta = timedelta(milliseconds=3000)
    max_submission_time: timedelta = timedelta(hours=1)
    min_words: int = 3
    vowel_ratio_min: float = 0.15
    vowel_ratio_max: float = 0.7

    @classmethod
    def from_settings(cls, settings: Settings) -> SubmissionPolicy:
        return cls(
            min_submission_time=settings.min_submission_time,
            max_submission_time=settings.max_submission_time,
            min_words=settings.min_message_words,
            vowel_ratio_min=settings.vowel_ratio_min,
            vowel_ratio_max=settings.vowel_ratio_max,
        )


def check_submission_timing(
    started_at: datetime,
    now: datetime,
    min_time: timedelta,
    max_time: timedelta,
) -> TimingCheck:
    """Compare time spent on the form against the allowed window.

    ``elapsed == min_time`` is accepted.
    """
    elapsed = now - started_at
    if elapsed < min_time:
        return TimingCheck(False, elapsed, ErrorKind.TOO_FAST)
    if elapsed > max_time:
        return TimingCheck(False, elapsed, ErrorKind.SESSION_EXPIRED)
    return TimingCheck(True, elapsed)


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


def vowel_ratio(text: str) -> float | None:
    """Share of vowels among ASCII letters, or ``None`` without letters."""
    letters = _LETTER.findall(text.lower())
    if not letters:
        return None
    vowels = sum(1 for letter in letters if letter in VOWELS)
    return vowels / len(letters)


class SubmissionValidator:
    def __init__(self, policy: SubmissionPolicy | None = None) -> None:
        self.policy = policy or SubmissionPolicy()

    def validate(self, submission: SubmissionRecord, now: datetime) -> ValidationResult:
        policy = self.policy
        required = (
            submission.name,
            submission.email,
            submission.subject,
            submission.message,
        )
        if any(not value or not value.strip() for value in required):
            return ValidationResult.reject(ErrorKind.MISSING_FIELDS)

        if submission.honeypot and submission.honeypot.strip():
            return ValidationResult.reject(ErrorKind.BOT_HONEYPOT)

        if submission.form_rendered_at is not None:
            timing = check_submission_timing(
                submission.form_rendered_at,
                now,
                policy.min_submission_time,
                policy.max_submission_time,
            )
            if not timing.valid:
                return ValidationResult.reject(timing.reason)

        if not is_valid_email(submission.email):
            return ValidationResult.reject(ErrorKind.INVALID_EMAIL)

        if len(submission.message.split()) < policy.min_words:
            return ValidationResult.reject(ErrorKind.MESSAGE_TOO_SHORT)

        ratio = vowel_ratio(submission.message)
        if ratio is not None and not (
            policy.vowel_ratio_min <= ratio <= policy.vowel_ratio_max
        ):
            return ValidationResult.reject(ErrorKind.CONTENT_SUSPICIOUS)

        return ValidationResult.ok()
