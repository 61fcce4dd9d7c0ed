"""Storage backends for rate limit windows.

Every backend implements :class:`RateStore`; the SQL one lives in
:mod:`contactgate.security.sql_rate_store`. The limiter owns the
locking; stores only need to persist what they are given.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from contactgate.utils.clock import from_epoch_millis, to_epoch_millis

if TYPE_CHECKING:
    from contactgate.client.storage import KeyValueStorage

logger = logging.getLogger(__name__)

CLIENT_STORAGE_KEY = "contact_form_submissions"


@dataclass(frozen=True)
class RateWindowRecord:
    """Submission instants recorded for one identity in its current window."""

    submissions: tuple[datetime, ...] = field(default_factory=tuple)

    @classmethod
    def started_at(cls, now: datetime) -> RateWindowRecord:
        return cls(submissions=(now,))

    @property
    def window_start(self) -> datetime:
        return self.submissions[0]

    @property
    def count(self) -> int:
        return len(self.submissions)

    def is_expired(self, now: datetime, window: timedelta) -> bool:
        return not self.submissions or now - self.window_start > window

    def reset_at(self, window: timedelta) -> datetime:
        return self.window_start + window

    def with_submission(self, now: datetime) -> RateWindowRecord:
        return RateWindowRecord(submissions=(*self.submissions, now))

    def to_millis(self) -> list[int]:
        return [to_epoch_millis(moment) for moment in self.submissions]

    @classmethod
    def from_millis(cls, values: list[int]) -> RateWindowRecord:
        return cls(submissions=tuple(from_epoch_millis(int(v)) for v in values))


class RateStore(Protocol):
    def get(self, identity: str) -> RateWindowRecord | None: ...

    def set(self, identity: str, record: RateWindowRecord) -> None: ...

    def delete(self, identity: str) -> None: ...

    def purge_expired(self, now: datetime, window: timedelta) -> int: ...

    def clear(self) -> None: ...


class MemoryRateStore:
    """Process-local map of identity to window; starts empty, never swept."""

    def __init__(self) -> None:
        self._records: dict[str, RateWindowRecord] = {}

    def get(self, identity: str) -> RateWindowRecord | None:
        return self._records.get(identity)

    def set(self, identity: str, record: RateWindowRecord) -> None:
        self._records[identity] = record

    def delete(self, identity: str) -> None:
        self._records.pop(identity, None)

    def purge_expired(self, now: datetime, window: timedelta) -> int:
        expired = [
            identity
            for identity, record in self._records.items()
            if record.is_expired(now, window)
        ]
        for identity in expired:
            del self._records[identity]
        return len(expired)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class KeyValueRateStore:
    """Single local identity persisted under one key of a key-value storage.

    The value is JSON ``{"submissions": [epoch_millis, ...], "count": n}``.
    Identity arguments are ignored: the storage itself is per-client.
    Corrupted values are discarded and treated as absent.
    """

    def __init__(
        self, storage: KeyValueStorage, key: str = CLIENT_STORAGE_KEY
    ) -> None:
        self._storage = storage
        self._key = key

    def get(self, identity: str) -> RateWindowRecord | None:
        raw = self._storage.get_item(self._key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            submissions = data["submissions"]
            if not isinstance(submissions, list) or not submissions:
                raise ValueError("submissions must be a non-empty list")
            return RateWindowRecord.from_millis(submissions)
        except (ValueError, TypeError, KeyError, OverflowError):
            logger.warning("Discarding corrupted rate limit state under %s", self._key)
            self._storage.remove_item(self._key)
            return None

    def set(self, identity: str, record: RateWindowRecord) -> None:
        payload = {"submissions": record.to_millis(), "count": record.count}
        self._storage.set_item(self._key, json.dumps(payload))

    def delete(self, identity: str) -> None:
        self._storage.remove_item(self._key)

    def purge_expired(self, now: datetime, window: timedelta) -> int:
        record = self.get("")
        if record is not None and record.is_expired(now, window):
            self._storage.remove_item(self._key)
            return 1
        return 0

    def clear(self) -> None:
        self._storage.remove_item(self._key)
