"""Shared fixtures: controllable clock, recording mailer, API client."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

# Configure the app *before* importing contactgate modules so the module-level
# settings never pick up a developer's .env delivery credentials.
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from contactgate.config import settings  # noqa: E402
from contactgate.main import app  # noqa: E402
from contactgate.security.rate_store import MemoryRateStore  # noqa: E402
from contactgate.services.admission import build_pipeline  # noqa: E402
from contactgate.services.mailer import DeliveryResult, OutboundMessage  # noqa: E402
from contactgate.utils.clock import to_epoch_millis  # noqa: E402

T0 = datetime(2026, 3, 14, 9, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingMailer:
    def __init__(self, result: DeliveryResult | None = None) -> None:
        self.result = result or DeliveryResult(id="email_123")
        self.sent: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        self.sent.append(message)
        return self.result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def rate_store() -> MemoryRateStore:
    return MemoryRateStore()


@pytest.fixture
def pipeline(clock, mailer, rate_store):
    return build_pipeline(settings, store=rate_store, mailer=mailer, clock=clock)


@pytest.fixture
def client(pipeline):
    with TestClient(app) as test_client:
        # Replace the lifespan-built pipeline with the controllable one
        app.state.pipeline = pipeline
        yield test_client


@pytest.fixture
def valid_payload(clock):
    def _build(**overrides) -> dict:
        payload = {
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "subject": "Collaboration",
            "message": "Hello, I would like to talk about your latest project.",
            "honeypot": "",
            "submissionTime": str(
                to_epoch_millis(clock.now - timedelta(seconds=30))
            ),
        }
        payload.update(overrides)
        return payload

    return _build
