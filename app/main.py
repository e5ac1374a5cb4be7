from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.middleware.security_middleware import setup_security_middleware
from app.core.exceptions import GENERIC_ERROR_MESSAGE, InvalidRequestError, ProxyError
from app.core.logging_config import SERVICE_NAME, configure_logging, get_logger
from app.core.rate_limiting import build_limiter, rate_limit_handler
from app.core.settings import Settings, load_settings_or_exit
from app.integrations.servicedesk import router as servicedesk_router
from app.integrations.servicedesk.client import ServiceDeskClient

logger = get_logger(__name__)


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        if exc.status_code >= 500:
            logger.error(
                "Upstream request failed",
                error=exc.message,
                resource=getattr(exc, "resource", None),
                path=request.url.path,
                method=request.method,
                **exc.details,
            )
        expose = not (exc.sanitize and settings.is_production)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(expose_message=expose))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = InvalidRequestError("Invalid request parameters")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Not found", "path": request.url.path})
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    # Global exception handler - never leak internal details in production
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "message": GENERIC_ERROR_MESSAGE if settings.is_production else str(exc),
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    servicedesk_client: Optional[ServiceDeskClient] = None,
) -> FastAPI:
    """Build the proxy application.

    Without explicit settings the environment is validated here and the
    process exits on bad configuration. A prebuilt ``servicedesk_client`` is
    used as-is; otherwise one is created for the lifetime of the app.
    """
    settings = settings or load_settings_or_exit()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_http: Optional[httpx.AsyncClient] = None
        if getattr(app.state, "servicedesk_client", None) is None:
            owned_http = httpx.AsyncClient(timeout=settings.upstream_timeout_ms / 1000)
            app.state.servicedesk_client = ServiceDeskClient.from_settings(settings, owned_http)

        logger.info(
            "Server started",
            port=settings.port,
            env=settings.node_env,
            allowed_origins=len(settings.allowed_origins),
        )
        try:
            yield
        finally:
            if owned_http is not None:
                await owned_http.aclose()
                app.state.servicedesk_client = None
            logger.info("Server stopped")

    app = FastAPI(
        title="ServiceDesk Proxy",
        version="1.0",
        description="Token-shielding read proxy for the ServiceDesk Plus API.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.servicedesk_client = servicedesk_client
    app.state.limiter = build_limiter(settings.rate_limit_per_minute)

    setup_security_middleware(app, settings)
    _register_exception_handlers(app, settings)

    @app.get("/health", tags=["General"])
    async def health_check():
        """Health check endpoint for monitoring and connectivity testing."""
        return {"status": "ok", "service": SERVICE_NAME}

    app.include_router(servicedesk_router, prefix="/api")
    return app


def run() -> None:
    import uvicorn

    settings = load_settings_or_exit()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_config=None)


# To run this app (from the project root directory):
# python -m app
# uvicorn app.main:create_app --factory --port 3001
