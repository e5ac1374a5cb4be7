from typing import Optional

from fastapi import Depends, Request

from app.api.dependencies import get_app_settings
from app.core.exceptions import AuthError
from app.core.logging_config import get_logger
from app.core.settings import Settings

logger = get_logger(__name__)

ADMIN_SYNC_HEADER = "x-admin-sync-key"


def is_valid_admin_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Plain equality check of the admin sync key.

    NOTE: not constant-time. Use hmac.compare_digest before gating anything
    more sensitive than the sync trigger.
    """
    if not provided or not expected:
        return False
    return provided == expected


def require_admin_sync_key(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    provided = request.headers.get(ADMIN_SYNC_HEADER)
    if not is_valid_admin_key(provided, settings.admin_sync_key):
        logger.warning(
            "Unauthorized sync attempt",
            ip=request.client.host if request.client else None,
            has_key=bool(provided),
        )
        raise AuthError(f"Invalid or missing {ADMIN_SYNC_HEADER} header")
