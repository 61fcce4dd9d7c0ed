"""JSON logging for the contact gate.

Every record carries the request correlation id plus static service
fields (service name, rate limit backend), so lines shipped from several
deployments of the gate can be told apart.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig

from asgi_correlation_id.context import correlation_id
from pythonjsonlogger import jsonlogger

SERVICE_NAME = "contactgate"

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "%(correlation_id)s %(service)s %(rate_limit_backend)s"
)


class CorrelationIdFilter(logging.Filter):
    """Attach the current request correlation ID to each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "unknown"
        return True


class ServiceContextFilter(logging.Filter):
    """Stamp each record with the fields that identify this deployment."""

    def __init__(
        self, service: str = SERVICE_NAME, rate_limit_backend: str = "memory"
    ) -> None:
        super().__init__()
        self.service = service
        self.rate_limit_backend = rate_limit_backend

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.rate_limit_backend = self.rate_limit_backend
        return True


def _library_levels(level: str, db_echo: bool) -> dict[str, dict]:
    # SQL statements only when DB_ECHO asks for them; httpx logs every
    # mail API call at INFO
    return {
        SERVICE_NAME: {"level": level},
        "sqlalchemy.engine": {"level": "INFO" if db_echo else "WARNING"},
        "httpx": {"level": "WARNING"},
        **{
            name: {"handlers": ["default"], "level": level, "propagate": False}
            for name in ("uvicorn.error", "uvicorn.access")
        },
    }


def configure_logging(
    level: str = "INFO",
    *,
    service: str = SERVICE_NAME,
    rate_limit_backend: str = "memory",
    db_echo: bool = False,
) -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "with_correlation": {"()": CorrelationIdFilter},
                "with_service": {
                    "()": ServiceContextFilter,
                    "service": service,
                    "rate_limit_backend": rate_limit_backend,
                },
            },
            "formatters": {
                "json": {"()": jsonlogger.JsonFormatter, "fmt": LOG_FORMAT}
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "filters": ["with_correlation", "with_service"],
                }
            },
            "root": {"handlers": ["default"], "level": level},
            "loggers": _library_levels(level, db_echo),
        }
    )
