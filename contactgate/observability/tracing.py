from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_configured = False


def parse_otlp_headers(raw: str | None) -> dict[str, str] | None:
    """Parse ``key=value,key2=value2`` OTLP header strings."""
    if not raw:
        return None
    result: dict[str, str] = {}
    for pair in (item.strip() for item in raw.split(",")):
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        result[key.strip()] = value.strip()
    return result or None


def configure_tracing(
    app,
    service_name: str,
    endpoint: str | None,
    headers: str | None,
    engine=None,
) -> bool:
    """Install the OTLP exporter and instrument FastAPI, httpx and SQLAlchemy.

    Returns False when tracing was already configured or no endpoint is set.
    """
    global _configured
    if _configured or not endpoint:
        return False

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=endpoint, headers=parse_otlp_headers(headers)
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    # Only the database rate limit backend has an engine to trace
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    _configured = True
    return True
