"""Persisted rate limit windows for the database-backed store."""

from __future__ import annotations

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from contactgate.database import Base


class RateWindow(Base):
    """One client identity's current submission window.

    Instants are stored as epoch milliseconds so window comparisons stay
    exact and timezone-free on every backend.
    """

    __tablename__ = "contact_rate_windows"

    identity: Mapped[str] = mapped_column(String(255), primary_key=True)
    window_start_ms: Mapped[int] = mapped_column(BigInteger, index=True)
    submissions: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
