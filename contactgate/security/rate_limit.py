"""Reset-style windowed rate limiting for contact submissions.

One algorithm serves both the authoritative server gate and the advisory
client pre-gate; only the :class:`~contactgate.security.rate_store.RateStore`
behind it differs.

Within a window an identity may submit ``max_per_window`` times. Once the
window has fully elapsed (strictly more than ``window`` since its first
submission) the next attempt starts a fresh window with a full quota; the
quota is never replenished gradually.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from contactgate.security.rate_store import (
    MemoryRateStore,
    RateStore,
    RateWindowRecord,
)
from contactgate.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)
DEFAULT_MAX_PER_WINDOW = 3


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    """Keyed windowed counter over a pluggable store."""

    def __init__(
        self,
        store: RateStore | None = None,
        *,
        window: timedelta = DEFAULT_WINDOW,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
        clock: Clock = utc_now,
    ) -> None:
        if max_per_window < 1:
            raise ValueError("max_per_window must be at least 1")
        self.store: RateStore = store if store is not None else MemoryRateStore()
        self.window = window
        self.max_per_window = max_per_window
        self._clock = clock
        # Guards the read-increment-write sequence for every identity
        self._lock = threading.Lock()

    def check_and_record(
        self, identity: str, now: datetime | None = None
    ) -> RateDecision:
        """Decide whether ``identity`` may submit now, recording the attempt.

        Denied attempts leave the stored record untouched. Storage errors
        fail open: the attempt is allowed with a full quota reported.
        """
        now = now or self._clock()
        with self._lock:
            self._purge_expired(now)
            try:
                return self._decide(identity, now)
            except Exception:
                logger.warning(
                    "Rate limit store failed for %s, allowing submission",
                    identity,
                    exc_info=True,
                )
                return RateDecision(
                    allowed=True, remaining=self.max_per_window, reset_at=now
                )

    def reset(self) -> None:
        """Drop every stored window."""
        with self._lock:
            try:
                self.store.clear()
            except Exception:
                logger.exception("Failed to reset rate limit store")

    def _decide(self, identity: str, now: datetime) -> RateDecision:
        record = self.store.get(identity)

        if record is None or record.is_expired(now, self.window):
            record = RateWindowRecord.started_at(now)
            self.store.set(identity, record)
            return RateDecision(
                allowed=True,
                remaining=self.max_per_window - 1,
                reset_at=record.reset_at(self.window),
            )

        if record.count >= self.max_per_window:
            logger.info(
                "Rate limit reached for %s (%d in window)", identity, record.count
            )
            return RateDecision(
                allowed=False, remaining=0, reset_at=record.reset_at(self.window)
            )

        record = record.with_submission(now)
        self.store.set(identity, record)
        return RateDecision(
            allowed=True,
            remaining=self.max_per_window - record.count,
            reset_at=record.reset_at(self.window),
        )

    def _purge_expired(self, now: datetime) -> None:
        # Housekeeping only; never affects the decision
        try:
            purged = self.store.purge_expired(now, self.window)
        except Exception:
            logger.warning("Failed to purge expired rate windows", exc_info=True)
            return
        if purged:
            logger.debug("Purged %d expired rate window(s)", purged)


def format_remaining_time(reset_at: datetime, now: datetime | None = None) -> str:
    """Human-readable wait until ``reset_at``, minutes rounded up."""
    now = now or utc_now()
    diff = reset_at - now
    if diff <= timedelta(0):
        return "0 minutes"

    # Ceiling division on whole minutes
    minutes = -(-diff // timedelta(minutes=1))
    hours, remaining_minutes = divmod(minutes, 60)

    def _plural(amount: int, unit: str) -> str:
        return f"{amount} {unit}{'s' if amount > 1 else ''}"

    if hours > 0:
        if remaining_minutes:
            return (
                f"{_plural(hours, 'hour')} and "
                f"{_plural(remaining_minutes, 'minute')}"
            )
        return _plural(hours, "hour")
    return _plural(minutes, "minute")
