"""
FastAPI Application - Contact form gate
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from starlette.exceptions import HTTPException as StarletteHTTPException

from contactgate.config import settings
from contactgate.observability import (
    MetricsMiddleware,
    configure_logging,
    metrics_response,
)
from contactgate.observability.tracing import configure_tracing
from contactgate.routers.contact import refusal_response
from contactgate.routers.contact import router as contact_router
from contactgate.schemas.contact import ErrorKind
from contactgate.security import MemoryRateStore, SecurityHeadersMiddleware
from contactgate.security.rate_store import RateStore
from contactgate.services.admission import build_pipeline

logger = logging.getLogger(__name__)


# ==========================================
# Rate limit store lifecycle
# ==========================================
def create_rate_store() -> RateStore:
    """Build the store named by RATE_LIMIT_BACKEND."""
    if settings.rate_limit_backend == "database":
        from contactgate.database import Base, SessionLocal, engine
        from contactgate.models import rate_window  # noqa: F401 - table metadata
        from contactgate.security.sql_rate_store import SqlRateStore

        Base.metadata.create_all(bind=engine)
        return SqlRateStore(SessionLocal)
    return MemoryRateStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting contact gate",
        extra={
            "rate_limit_backend": settings.rate_limit_backend,
            "email_backend": settings.email_backend,
            "email_enabled": settings.email_enabled,
        },
    )
    store = create_rate_store()
    app.state.rate_store = store
    app.state.pipeline = build_pipeline(settings, store=store)
    yield
    logger.info("Shutting down contact gate")


# ==========================================
# Environment
# ==========================================
configure_logging(
    settings.log_level.upper(),
    rate_limit_backend=settings.rate_limit_backend,
    db_echo=settings.db_echo,
)
IS_PROD = settings.is_production


# ==========================================
# Exception handlers (define BEFORE registration)
# ==========================================
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors in the contact response shape."""
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return refusal_response(
            ErrorKind.METHOD_NOT_ALLOWED,
            headers=dict(exc.headers or {}) or {"Allow": "POST"},
        )
    headers = getattr(exc, "headers", None)
    return JSONResponse(
        {"success": False, "error": exc.detail},
        status_code=exc.status_code,
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a client error, reported like missing fields."""
    logger.info("Rejected malformed contact body: %s", exc.errors())
    return refusal_response(ErrorKind.MISSING_FIELDS, "Invalid request body.")


# ==========================================
# FastAPI Application
# ==========================================
app = FastAPI(
    title="Contact Gate",
    description="Contact form admission and email relay",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if IS_PROD else "/docs",
    redoc_url=None if IS_PROD else "/redoc",
    openapi_url=None if IS_PROD else "/openapi.json",
)
# Order: metrics → security → cors → correlation id
app.add_middleware(MetricsMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
# CORS: "*" unless ALLOWED_ORIGINS pins the site origin
allowed_origins = settings.cors_origins
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["POST"],
        allow_headers=["Content-Type"],
    )
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")
# Optional tracing
if settings.enable_tracing and settings.otlp_endpoint:
    _engine = None
    if settings.rate_limit_backend == "database":
        from contactgate.database import engine as _engine
    configure_tracing(
        app,
        "contactgate",
        settings.otlp_endpoint,
        settings.otlp_headers,
        engine=_engine,
    )


# ==========================================
# Health & readiness (minimal in prod)
# ==========================================
@app.get("/healthz", tags=["system"], summary="Health check", response_model=dict)
async def health_check() -> dict:
    if IS_PROD:
        return {"status": "healthy"}
    return {"status": "healthy", "version": app.version}


@app.get("/readyz", tags=["system"], summary="Readiness check", response_model=dict)
async def readiness_check(request: Request) -> dict:
    store: RateStore | None = getattr(request.app.state, "rate_store", None)
    try:
        if store is None:
            raise RuntimeError("Rate limit store not initialized")
        store.get("__readiness__")
    except Exception as exc:
        logger.warning("Readiness check failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="not ready" if IS_PROD else str(exc),
        )
    if IS_PROD:
        return {"status": "ready"}
    return {"status": "ready", "rate_limit_backend": settings.rate_limit_backend}


# ==========================================
# Metrics (Protected with HTTP Basic Auth)
# ==========================================
security = HTTPBasic(auto_error=False)


def verify_metrics_auth(
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> str:
    """Verify HTTP Basic Auth credentials for metrics endpoint."""
    if not settings.metrics_password:
        # If no password is set, allow access
        return credentials.username if credentials else "anonymous"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    correct_username = secrets.compare_digest(
        credentials.username, settings.metrics_username
    )
    correct_password = secrets.compare_digest(
        credentials.password, settings.metrics_password
    )

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@app.get("/metrics", include_in_schema=False)
def metrics(_: str = Depends(verify_metrics_auth)):
    """
    Prometheus metrics endpoint (protected with HTTP Basic Auth).

    Set METRICS_USERNAME and METRICS_PASSWORD environment variables.
    """
    return metrics_response()


# ==========================================
# Routers
# ==========================================
app.include_router(contact_router)
