"""Advisory client-side checks run before a contact form is submitted.

These mirror the server's rate limit and timing rules to spare obviously
doomed requests. They are trivially bypassed and the server re-runs every
check on its own.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from contactgate.client.storage import KeyValueStorage, MemoryStorage
from contactgate.schemas.contact import ERROR_MESSAGES, parse_epoch_millis
from contactgate.security.bot_detection import TimingCheck, check_submission_timing
from contactgate.security.rate_limit import (
    DEFAULT_MAX_PER_WINDOW,
    DEFAULT_WINDOW,
    RateDecision,
    RateLimiter,
    format_remaining_time,
)
from contactgate.security.rate_store import CLIENT_STORAGE_KEY, KeyValueRateStore
from contactgate.utils.clock import Clock, to_epoch_millis, utc_now

logger = logging.getLogger(__name__)

LOCAL_IDENTITY = "local"


class ClientPreGate:
    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        *,
        window: timedelta = DEFAULT_WINDOW,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
        min_submission_time: timedelta = timedelta(milliseconds=3000),
        max_submission_time: timedelta = timedelta(hours=1),
        storage_key: str = CLIENT_STORAGE_KEY,
        clock: Clock = utc_now,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.min_submission_time = min_submission_time
        self.max_submission_time = max_submission_time
        self._clock = clock
        self.limiter = RateLimiter(
            KeyValueRateStore(self.storage, storage_key),
            window=window,
            max_per_window=max_per_window,
            clock=clock,
        )

    def check(self, now: datetime | None = None) -> RateDecision:
        """Count a local submission attempt against the quota."""
        return self.limiter.check_and_record(LOCAL_IDENTITY, now)

    def reset(self) -> None:
        """Forget every recorded submission. Meant for tests and debugging."""
        self.limiter.reset()

    def submission_timestamp(self) -> str:
        """Epoch-millis marker to send back as ``submissionTime``."""
        return str(to_epoch_millis(self._clock()))

    def validate_timing(
        self, started_at: str | int | None, now: datetime | None = None
    ) -> TimingCheck:
        """Check time spent on the form; unreadable markers fail open."""
        now = now or self._clock()
        started = parse_epoch_millis(started_at)
        if started is None:
            logger.warning("Unreadable form timestamp %r, skipping check", started_at)
            return TimingCheck(True, timedelta(0))
        return check_submission_timing(
            started, now, self.min_submission_time, self.max_submission_time
        )

    def format_remaining_time(self, reset_at: datetime) -> str:
        return format_remaining_time(reset_at, self._clock())

    def timing_message(self, check: TimingCheck) -> str | None:
        return None if check.valid else ERROR_MESSAGES[check.reason]
