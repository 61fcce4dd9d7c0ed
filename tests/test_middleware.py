"""Tests for security headers, system endpoints and observability wiring."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from contactgate.config import settings
from contactgate.main import app
from contactgate.middleware.security import SecurityHeadersMiddleware
from contactgate.observability.logging import (
    CorrelationIdFilter,
    ServiceContextFilter,
    configure_logging,
)
from contactgate.observability.tracing import parse_otlp_headers


class TestSecurityHeaders:
    """Verify hardened headers are set on API responses."""

    def test_api_headers_present(self, client, valid_payload):
        resp = client.post("/api/send-email", json=valid_payload())
        assert resp.headers["Content-Security-Policy"] == (
            "default-src 'none'; frame-ancestors 'none'"
        )
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Referrer-Policy"] == "no-referrer"
        assert resp.headers["Cross-Origin-Resource-Policy"] == "cross-origin"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_no_cache_header_outside_api(self, client):
        resp = client.get("/healthz")
        assert "Cache-Control" not in resp.headers

    def test_no_hsts_over_plain_http(self, client):
        resp = client.get("/healthz")
        assert "Strict-Transport-Security" not in resp.headers

    def test_hsts_behind_https_proxy(self):
        """HSTS is sent when a proxy reports HTTPS for a real host."""

        def homepage(request):
            return PlainTextResponse("ok")

        demo = Starlette(routes=[Route("/", homepage)])
        demo.add_middleware(SecurityHeadersMiddleware)
        with TestClient(demo, base_url="http://gate.example") as tc:
            resp = tc.get("/", headers={"X-Forwarded-Proto": "https"})
        assert resp.headers["Strict-Transport-Security"].startswith("max-age=")

    def test_request_id_is_echoed(self, client):
        resp = client.get("/healthz")
        assert resp.headers.get("X-Request-ID")


class TestSystemEndpoints:
    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_readyz(self, client):
        resp = client.get("/readyz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready", "rate_limit_backend": "memory"}

    def test_readyz_store_failure(self, client):
        broken = MagicMock()
        broken.get.side_effect = OSError("database is locked")
        app.state.rate_store = broken
        resp = client.get("/readyz")
        assert resp.status_code == 503
        assert resp.json()["success"] is False

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Not Found"}


class TestMetricsEndpoint:
    def test_open_without_password(self, client, monkeypatch):
        monkeypatch.setattr(settings, "metrics_password", None)
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "contactgate_request_total" in resp.text

    def test_requires_credentials_with_password(self, client, monkeypatch):
        monkeypatch.setattr(settings, "metrics_password", "s3cret")
        assert client.get("/metrics").status_code == 401
        assert client.get("/metrics", auth=("prometheus", "wrong")).status_code == 401
        resp = client.get("/metrics", auth=("prometheus", "s3cret"))
        assert resp.status_code == 200

    def test_admission_outcomes_counted(self, client, valid_payload, monkeypatch):
        monkeypatch.setattr(settings, "metrics_password", None)
        client.post("/api/send-email", json=valid_payload(honeypot="x"))
        resp = client.get("/metrics")
        assert 'contactgate_admission_total{outcome="bot-honeypot"}' in resp.text


class TestObservabilityHelpers:
    def test_parse_otlp_headers(self):
        assert parse_otlp_headers("a=1, b = two,junk") == {"a": "1", "b": "two"}
        assert parse_otlp_headers("") is None
        assert parse_otlp_headers("junk") is None

    def test_correlation_filter_defaults_to_unknown(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "unknown"

    def test_service_filter_stamps_deployment_fields(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        ServiceContextFilter(rate_limit_backend="database").filter(record)
        assert record.service == "contactgate"
        assert record.rate_limit_backend == "database"


class TestLoggingConfiguration:
    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        yield
        configure_logging("WARNING")

    def test_sql_statements_quiet_by_default(self):
        configure_logging("INFO")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("contactgate").level == logging.INFO

    def test_db_echo_enables_sql_statements(self):
        configure_logging("INFO", db_echo=True)
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

    def test_handler_carries_service_context(self):
        configure_logging("INFO", rate_limit_backend="database")
        service_filters = [
            f
            for handler in logging.getLogger().handlers
            for f in handler.filters
            if isinstance(f, ServiceContextFilter)
        ]
        assert len(service_filters) == 1
        assert service_filters[0].rate_limit_backend == "database"
