"""Logging, metrics and tracing wiring for the contact gate."""

from __future__ import annotations

from contactgate.observability.logging import configure_logging
from contactgate.observability.metrics import (
    MetricsMiddleware,
    metrics_response,
    record_admission,
)

__all__ = [
    "MetricsMiddleware",
    "configure_logging",
    "metrics_response",
    "record_admission",
]
