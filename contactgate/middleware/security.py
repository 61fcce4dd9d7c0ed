from __future__ import annotations

from collections.abc import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def _is_secure_request(request: Request) -> bool:
    # Honor reverse proxy headers if present
    xf_proto = request.headers.get("x-forwarded-proto")
    if xf_proto:
        return "https" in xf_proto
    return request.url.scheme == "https"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Sets hardened headers on every API response.
    - Deny-all CSP (responses are JSON, never rendered)
    - HTTPS-aware HSTS
    - No caching of submission responses
    """

    def __init__(
        self,
        app,
        *,
        csp_directives: Iterable[str] | None = None,
        hsts: str = "max-age=63072000; includeSubDomains",
        referrer_policy: str = "no-referrer",
        enable_hsts_on_http: bool = False,  # leave False: avoid HSTS in dev/http
        skip_hsts_hosts: set[str] | None = None,
        no_store_paths: Iterable[str] = ("/api/",),
    ) -> None:
        super().__init__(app)
        self.hsts = hsts
        self.referrer_policy = referrer_policy
        self.enable_hsts_on_http = enable_hsts_on_http
        self.skip_hsts_hosts = skip_hsts_hosts or {"localhost", "127.0.0.1"}
        self.no_store_paths = tuple(no_store_paths)
        self.csp_value = "; ".join(
            csp_directives or ["default-src 'none'", "frame-ancestors 'none'"]
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers.setdefault("Content-Security-Policy", self.csp_value)

        # HSTS: only on HTTPS and non-dev hosts unless explicitly enabled
        if _is_secure_request(request) or self.enable_hsts_on_http:
            if request.url.hostname not in self.skip_hsts_hosts:
                response.headers.setdefault("Strict-Transport-Security", self.hsts)

        response.headers.setdefault("Referrer-Policy", self.referrer_policy)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        # The form lives on another origin and reads these responses
        response.headers.setdefault("Cross-Origin-Resource-Policy", "cross-origin")

        if request.url.path.startswith(self.no_store_paths):
            response.headers.setdefault("Cache-Control", "no-store")

        return response
