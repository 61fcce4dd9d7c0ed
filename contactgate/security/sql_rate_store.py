"""Database-backed rate window store.

Importing this module builds the SQL engine; only the database backend
loads it.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session, sessionmaker

from contactgate.models.rate_window import RateWindow
from contactgate.security.rate_store import RateWindowRecord
from contactgate.utils.clock import to_epoch_millis


class SqlRateStore:
    """Rate windows kept in the ``contact_rate_windows`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, identity: str) -> RateWindowRecord | None:
        with self._session_factory() as db:
            row = db.get(RateWindow, identity)
            if row is None:
                return None
            return RateWindowRecord.from_millis(json.loads(row.submissions))

    def set(self, identity: str, record: RateWindowRecord) -> None:
        millis = record.to_millis()
        with self._session_factory() as db:
            row = db.get(RateWindow, identity)
            if row is None:
                row = RateWindow(identity=identity)
                db.add(row)
            row.window_start_ms = millis[0]
            row.submissions = json.dumps(millis)
            db.commit()

    def delete(self, identity: str) -> None:
        with self._session_factory() as db:
            db.execute(delete(RateWindow).where(RateWindow.identity == identity))
            db.commit()

    def purge_expired(self, now: datetime, window: timedelta) -> int:
        cutoff_ms = to_epoch_millis(now - window)
        with self._session_factory() as db:
            result = db.execute(
                delete(RateWindow).where(RateWindow.window_start_ms < cutoff_ms)
            )
            db.commit()
            return result.rowcount or 0

    def clear(self) -> None:
        with self._session_factory() as db:
            db.execute(delete(RateWindow))
            db.commit()
