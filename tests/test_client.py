"""Tests for contactgate/client — pre-gate and endpoint client."""

from __future__ import annotations

import importlib
import json
import sys
from datetime import timedelta
from unittest.mock import MagicMock

import httpx
import pytest

from contactgate.client import ClientPreGate, ContactFormClient, MemoryStorage
from contactgate.schemas.contact import ErrorKind
from contactgate.security.rate_store import CLIENT_STORAGE_KEY
from contactgate.utils.clock import to_epoch_millis

from conftest import T0, FakeClock


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def pregate(storage, clock) -> ClientPreGate:
    return ClientPreGate(storage, clock=clock)


class TestClientPreGate:
    def test_quota_tracked_in_storage(self, pregate, storage, clock):
        decisions = []
        for _ in range(4):
            decisions.append(pregate.check())
            clock.advance(minutes=1)

        assert [d.allowed for d in decisions] == [True, True, True, False]
        data = json.loads(storage.get_item(CLIENT_STORAGE_KEY))
        assert data["count"] == 3
        assert data["submissions"][0] == to_epoch_millis(T0)

    def test_window_expiry_resets_quota(self, pregate, clock):
        for _ in range(3):
            pregate.check()
        assert not pregate.check().allowed
        clock.advance(hours=1, milliseconds=1)
        assert pregate.check().allowed

    def test_reset_forgets_submissions(self, pregate, storage):
        pregate.check()
        pregate.reset()
        assert storage.get_item(CLIENT_STORAGE_KEY) is None

    def test_storage_failure_fails_open(self, clock):
        broken = MagicMock()
        broken.get_item.side_effect = OSError("storage disabled")
        gate = ClientPreGate(broken, clock=clock)
        for _ in range(5):
            assert gate.check().allowed

    def test_submission_timestamp_is_epoch_millis(self, pregate):
        assert pregate.submission_timestamp() == str(to_epoch_millis(T0))

    def test_timing_too_fast(self, pregate, clock):
        started = pregate.submission_timestamp()
        clock.advance(seconds=1)
        check = pregate.validate_timing(started)
        assert check.valid is False
        assert check.reason is ErrorKind.TOO_FAST
        assert pregate.timing_message(check) == (
            "Please take the time to fill in the form properly."
        )

    def test_timing_expired(self, pregate, clock):
        started = pregate.submission_timestamp()
        clock.advance(hours=2)
        assert pregate.validate_timing(started).reason is ErrorKind.SESSION_EXPIRED

    def test_timing_ok(self, pregate, clock):
        started = pregate.submission_timestamp()
        clock.advance(seconds=3)
        check = pregate.validate_timing(started)
        assert check.valid is True
        assert pregate.timing_message(check) is None

    def test_unreadable_timestamp_fails_open(self, pregate):
        assert pregate.validate_timing("not-a-number").valid is True

    def test_format_remaining_time(self, pregate):
        assert pregate.format_remaining_time(T0 + timedelta(minutes=90)) == (
            "1 hour and 30 minutes"
        )


def _server(status: int, body: dict, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


FORM = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "subject": "Collaboration",
    "message": "Hello, I would like to talk about your latest project.",
}


class TestContactFormClient:
    @pytest.mark.asyncio
    async def test_posts_form_and_parses_success(self, pregate, clock):
        seen: list[httpx.Request] = []
        transport = _server(
            200,
            {"success": True, "message": "Email sent successfully.", "id": "e1"},
            seen,
        )
        client = ContactFormClient(
            "https://site.example/", pregate, transport=transport
        )
        started = pregate.submission_timestamp()
        clock.advance(seconds=20)

        result = await client.submit(**FORM, started_at=started)

        assert result.success is True
        assert result.id == "e1"
        request = seen[0]
        assert request.url == "https://site.example/api/send-email"
        body = json.loads(request.content)
        assert body["submissionTime"] == started
        assert body["honeypot"] == ""

    @pytest.mark.asyncio
    async def test_server_refusal_passed_through(self, pregate):
        transport = _server(
            400,
            {
                "success": False,
                "error": "Invalid email format.",
                "code": "invalid-email",
            },
        )
        client = ContactFormClient("http://gate", pregate, transport=transport)
        result = await client.submit(**FORM)
        assert result.success is False
        assert result.code is ErrorKind.INVALID_EMAIL

    @pytest.mark.asyncio
    async def test_local_rate_limit_skips_network(self, storage):
        seen: list[httpx.Request] = []
        gate = ClientPreGate(storage, max_per_window=1, clock=FakeClock())
        client = ContactFormClient(
            "http://gate", gate, transport=_server(200, {"success": True}, seen)
        )
        await client.submit(**FORM)
        result = await client.submit(**FORM)

        assert len(seen) == 1
        assert result.code is ErrorKind.RATE_LIMITED
        assert result.error == "Too many attempts. Please try again in 1 hour."

    @pytest.mark.asyncio
    async def test_too_fast_handled_locally(self, pregate):
        seen: list[httpx.Request] = []
        client = ContactFormClient(
            "http://gate", pregate, transport=_server(200, {"success": True}, seen)
        )
        result = await client.submit(**FORM, started_at=pregate.submission_timestamp())
        assert seen == []
        assert result.code is ErrorKind.TOO_FAST

    @pytest.mark.asyncio
    async def test_network_failure_is_internal_error(self, pregate):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        client = ContactFormClient(
            "http://gate", pregate, transport=httpx.MockTransport(handler)
        )
        result = await client.submit(**FORM)
        assert result.success is False
        assert result.code is ErrorKind.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_non_json_response_is_internal_error(self, pregate):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(502, text="<html>Bad gateway</html>")
        )
        client = ContactFormClient("http://gate", pregate, transport=transport)
        result = await client.submit(**FORM)
        assert result.code is ErrorKind.INTERNAL_ERROR


class TestClientImports:
    def test_client_package_never_builds_sql_engine(self, monkeypatch):
        """The advisory client must import without any database driver."""
        for name in [m for m in sys.modules if m.split(".")[0] == "contactgate"]:
            monkeypatch.delitem(sys.modules, name)
        # A database the client must never touch
        monkeypatch.setenv("DATABASE_URL", "postgresql://user@db.invalid/contact")

        client_pkg = importlib.import_module("contactgate.client")

        assert client_pkg.ClientPreGate is not None
        assert "contactgate.database" not in sys.modules
        assert "contactgate.security.sql_rate_store" not in sys.modules
