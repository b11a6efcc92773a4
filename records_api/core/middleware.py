"""
HTTP middleware: bearer-token authentication gate, security headers,
request counters.
"""

from __future__ import annotations

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from records_api.core.config import get_settings
from records_api.core.fhir import create_operation_outcome
from records_api.core.metrics import metrics
from records_api.core.tokens import TokenError, decode_access_token

log = structlog.get_logger()
settings = get_settings()

# ---------------------------------------------------------------------------
# Authentication gate
# ---------------------------------------------------------------------------

PUBLIC_PATHS = (
    "/health",
    "/metrics",
    f"{settings.api_base_path}/auth/login",
    f"{settings.api_base_path}/auth/register",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def is_public_path(path: str) -> bool:
    """True for allow-listed paths and anything beneath them."""
    return any(path == public or path.startswith(public + "/") for public in PUBLIC_PATHS)


def _unauthorized(diagnostics: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=create_operation_outcome("error", "unauthorized", diagnostics),
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Verify the bearer token on every non-public request.

    On success the verified TokenClaims are stored on ``request.state.claims``
    for the identity dependency; nothing else is derived here.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        authorization = request.headers.get("Authorization")
        if not authorization:
            log.warning("auth.missing_header", path=request.url.path)
            return _unauthorized("Missing authorization header")

        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            log.warning("auth.invalid_format", path=request.url.path)
            return _unauthorized("Invalid authorization format")

        try:
            request.state.claims = decode_access_token(token)
        except TokenError as exc:
            log.warning("auth.token_rejected", path=request.url.path, reason=exc.message)
            return _unauthorized(exc.message)

        return await call_next(request)


# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "frame-ancestors 'none';"
    ),
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Request counters
# ---------------------------------------------------------------------------

class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Count requests and responses by status class."""

    async def dispatch(self, request: Request, call_next) -> Response:
        metrics.inc("http_requests_total")
        response = await call_next(request)
        metrics.inc(f"http_responses_{response.status_code // 100}xx_total")
        return response
