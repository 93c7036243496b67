"""
HTTP middlewares for the FastAPI application.
Implements security headers, content-type validation and per-IP admission.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from rest_api.core.errors import http_exception_handler
from shared.config.logging import audit_rate_limit_event
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.security.rate_limit import client_key
from shared.utils.exceptions import RateLimitError


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff (prevent MIME sniffing)
    - X-Frame-Options: DENY (prevent clickjacking)
    - Referrer-Policy: strict-origin-when-cross-origin
    - Permissions-Policy: disable browser features the API never needs
    - Content-Security-Policy: API responses are JSON only
    - Strict-Transport-Security: production only
    """

    async def dispatch(self, request: Request, call_next):
        from shared.config.settings import settings

        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if "server" in response.headers:
            del response.headers["server"]
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """
    Validate Content-Type for requests with body.

    JSON everywhere except the upload endpoints, which take multipart forms.
    Returns 415 Unsupported Media Type otherwise.
    """

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}
    MULTIPART_PATHS = ("/api/admin/uploads", "/api/franchise/uploads")

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY:
            content_type = request.headers.get("content-type", "")
            allowed = content_type.startswith("application/json")
            if request.url.path.startswith(self.MULTIPART_PATHS):
                allowed = allowed or content_type.startswith("multipart/form-data")
            if content_type and not allowed:
                return JSONResponse(
                    status_code=415,
                    content={"error": "Unsupported Media Type. Use application/json"},
                )
        return await call_next(request)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token-bucket admission for /api/* requests, keyed by client IP.

    The limiter is read from the application context on every request so
    it can be replaced at runtime (tests install a 1-per-minute limiter).
    """

    EXEMPT_PATHS = ("/api/health",)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith("/api/") or path.startswith(self.EXEMPT_PATHS):
            return await call_next(request)

        ctx = getattr(request.app.state, "ctx", None)
        if ctx is None:
            return await call_next(request)

        limiter = ctx.limiter
        key = client_key(request)
        if not limiter.allow(key):
            audit_rate_limit_event(
                identifier=key,
                limit=limiter.max_requests,
                window=int(limiter.window_seconds),
                path=path,
            )
            return http_exception_handler(
                request, RateLimitError(limiter.retry_after(key), identifier=key, path=path)
            )
        return await call_next(request)


def register_middlewares(app: FastAPI) -> None:
    """
    Register all middlewares on the FastAPI application.

    Middlewares run in reverse order of registration: correlation id is
    outermost so rate-limit denials carry X-Request-ID too.
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContentTypeValidationMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
