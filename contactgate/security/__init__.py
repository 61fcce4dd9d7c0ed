"""Security façade for rate limiting, bot detection and headers middleware."""

# Re-export the headers middleware from its actual module path (no collision)
from contactgate.middleware.security import SecurityHeadersMiddleware  # noqa: F401

from .bot_detection import (  # noqa: F401
    SubmissionPolicy,
    SubmissionRecord,
    SubmissionValidator,
    ValidationResult,
    check_submission_timing,
)
from .rate_limit import (  # noqa: F401
    RateDecision,
    RateLimiter,
    format_remaining_time,
)
from .rate_store import (  # noqa: F401
    KeyValueRateStore,
    MemoryRateStore,
    RateStore,
    RateWindowRecord,
)

__all__ = [
    "KeyValueRateStore",
    "MemoryRateStore",
    "RateDecision",
    "RateLimiter",
    "RateStore",
    "RateWindowRecord",
    "SecurityHeadersMiddleware",
    "SqlRateStore",
    "SubmissionPolicy",
    "SubmissionRecord",
    "SubmissionValidator",
    "ValidationResult",
    "check_submission_timing",
    "format_remaining_time",
]


def __getattr__(name: str):
    # The SQL backend builds an engine on import; load it on first use only
    if name == "SqlRateStore":
        from .sql_rate_store import SqlRateStore

        return SqlRateStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
