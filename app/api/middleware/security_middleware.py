"""
Security Middleware for FastAPI
Adds security headers, enforces the browser origin allowlist, rate limits
per client IP and logs every completed request.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
import time
from typing import Callable, Iterable

from app.core.exceptions import OriginNotAllowedError
from app.core.logging_config import get_logger
from app.core.settings import Settings

logger = get_logger(__name__)

CORS_ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOWED_HEADERS = ["Content-Type", "Authorization", "x-admin-sync-key"]


def add_security_headers(response: Response) -> Response:
    """Add security headers to response"""
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "base-uri 'self'; "
        "font-src 'self' https: data:; "
        "form-action 'self'; "
        "frame-ancestors 'self'; "
        "img-src 'self' data:; "
        "object-src 'none'; "
        "script-src 'self'; "
        "script-src-attr 'none'; "
        "style-src 'self' https: 'unsafe-inline'; "
        "upgrade-insecure-requests"
    )
    response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
    response.headers["Cross-Origin-Resource-Policy"] = "same-origin"
    response.headers["Origin-Agent-Cluster"] = "?1"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-DNS-Prefetch-Control"] = "off"
    response.headers["X-Download-Options"] = "noopen"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["X-Permitted-Cross-Domain-Policies"] = "none"
    response.headers["X-XSS-Protection"] = "0"
    return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        return add_security_headers(response)


class OriginAllowlistMiddleware(BaseHTTPMiddleware):
    """Reject browser requests whose Origin is not allowlisted.

    Requests without an Origin header (curl, server-to-server) pass through.
    """

    def __init__(self, app, allowed_origins: Iterable[str] = ()):
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        origin = request.headers.get("origin")
        if origin and origin not in self.allowed_origins:
            error = OriginNotAllowedError(origin)
            logger.warning("CORS blocked request", path=request.url.path, **error.details)
            return JSONResponse(status_code=error.status_code, content=error.to_dict())
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else None

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
                ip=client_ip,
                error=type(e).__name__,
            )
            raise

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
            ip=client_ip,
        )
        return response


def setup_security_middleware(app: FastAPI, settings: Settings) -> None:
    """Setup all security middleware for the application.

    Starlette runs the last added middleware first, so the stack below reads
    innermost to outermost.
    """
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=CORS_ALLOWED_METHODS,
        allow_headers=CORS_ALLOWED_HEADERS,
    )
    app.add_middleware(OriginAllowlistMiddleware, allowed_origins=settings.allowed_origins)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
