"""
Rate limiting for the ServiceDesk proxy: one fixed window per client IP.
"""

from .limiter import RATE_LIMIT_BODY, build_limiter, rate_limit_handler

__all__ = [
    "RATE_LIMIT_BODY",
    "build_limiter",
    "rate_limit_handler",
]
