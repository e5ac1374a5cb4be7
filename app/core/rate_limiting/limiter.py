"""
Per-client-IP request rate limiting built on SlowAPI.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.core.logging_config import get_logger

logger = get_logger(__name__)

RATE_LIMIT_BODY = {"error": "Too many requests", "message": "Please try again later"}


def build_limiter(per_minute: int) -> Limiter:
    """Create an in-memory limiter applying ``per_minute`` requests/minute to every route."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[f"{per_minute}/minute"],
        headers_enabled=False,
    )


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded",
        ip=request.client.host if request.client else None,
        limit=str(exc.detail),
    )
    response = JSONResponse(status_code=429, content=dict(RATE_LIMIT_BODY))
    response.headers["Retry-After"] = "60"
    return response
