"""
Error taxonomy for the ServiceDesk proxy.

Every error knows the HTTP status it maps to and how to render itself as a
JSON body. Upstream failures are sanitized: their message never contains
upstream response bodies or credentials.
"""

from typing import Any, Dict, Optional

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class ProxyError(Exception):
    """Base exception for errors surfaced to API clients."""

    status_code: int = 500
    error: str = "Internal server error"
    # When True the message is replaced by a generic one in production.
    sanitize: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self, expose_message: bool = True) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "success": False,
            "error": self.error,
            "message": self.message if expose_message else GENERIC_ERROR_MESSAGE,
        }


class InvalidRequestError(ProxyError):
    """Raised for missing or malformed client input."""

    status_code = 400
    error = "Bad request"


class AuthError(ProxyError):
    """Raised when the admin sync key is missing or wrong."""

    status_code = 401
    error = "Unauthorized"


class OriginNotAllowedError(ProxyError):
    """Raised when a browser origin is not on the allowlist."""

    status_code = 403
    error = "Not allowed by CORS"

    def __init__(self, origin: str):
        super().__init__(f"Origin {origin} is not allowed", {"origin": origin})
        self.origin = origin


class UpstreamError(ProxyError):
    """Base class for failures talking to the ServiceDesk API."""

    sanitize = True

    def __init__(self, message: str, resource: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.resource = resource


class UpstreamHTTPError(UpstreamError):
    """The upstream answered with a non-2xx status."""

    def __init__(self, message: str, resource: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(message, resource, {"upstream_status": upstream_status})
        self.upstream_status = upstream_status


class UpstreamTimeoutError(UpstreamError):
    """An attempt exceeded its timeout; never retried."""


class UpstreamConnectionError(UpstreamError):
    """Transport failures persisted through every retry."""


class UpstreamPayloadError(UpstreamError):
    """The upstream answered 2xx with a body that is not a JSON object."""
