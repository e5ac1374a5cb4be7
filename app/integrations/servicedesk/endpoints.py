from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.dependencies import get_app_settings, get_servicedesk_client
from app.core.exceptions import InvalidRequestError
from app.core.logging_config import get_logger
from app.core.settings import Settings

from .client import ServiceDeskClient
from .filters import filter_requests
from .normalization import normalize_ticket
from .security import require_admin_sync_key

router = APIRouter(prefix="/integrations/servicedesk", tags=["ServiceDesk"])

logger = get_logger(__name__)

SYNC_PREVIEW_SIZE = 5


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _day_boundary_ms(value: str, param: str, *, end_of_day: bool) -> int:
    """Parse ``YYYY-MM-DD`` as a UTC day and return its first or last second in epoch ms."""
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidRequestError(f"'{param}' must be a date in YYYY-MM-DD format") from exc
    boundary = time(23, 59, 59) if end_of_day else time(0, 0, 0)
    return int(datetime.combine(day, boundary, tzinfo=timezone.utc).timestamp() * 1000)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/accounts")
async def list_accounts(
    request: Request,
    client: ServiceDeskClient = Depends(get_servicedesk_client),
) -> Dict[str, Any]:
    """Returns normalized list of all accounts from ServiceDesk Plus."""
    logger.info("Accounts request received", ip=_client_ip(request))

    accounts = await client.fetch_all_accounts()
    return {
        "success": True,
        "count": len(accounts),
        "data": [account.to_dict() for account in accounts],
    }


@router.get("/requests")
async def list_requests(
    account: Optional[str] = Query(default=None),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    client: ServiceDeskClient = Depends(get_servicedesk_client),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Requests for one account, date-filtered and with excluded technicians removed."""
    if not account:
        raise InvalidRequestError("Query parameter 'account' is required")

    from_ms = _day_boundary_ms(date_from, "from", end_of_day=False) if date_from else None
    to_ms = _day_boundary_ms(date_to, "to", end_of_day=True) if date_to else None
    excluded = settings.excluded_technicians

    raw_requests = await client.fetch_all_requests(account)
    kept = filter_requests(
        raw_requests,
        from_ms=from_ms,
        to_ms=to_ms,
        excluded_technicians=excluded,
    )

    return {
        "success": True,
        "meta": {
            "account": account,
            "from": date_from,
            "to": date_to,
            "total_raw": len(raw_requests),
            "total_filtered": len(kept),
            "excluded_technicians": sorted(excluded),
        },
        "data": [normalize_ticket(ticket) for ticket in kept],
    }


@router.post("/accounts/sync", dependencies=[Depends(require_admin_sync_key)])
async def sync_accounts(
    request: Request,
    client: ServiceDeskClient = Depends(get_servicedesk_client),
) -> Dict[str, Any]:
    """Admin-only account sync trigger. Nothing is persisted yet."""
    logger.info("Account sync triggered", ip=_client_ip(request))

    accounts = await client.fetch_all_accounts()
    timestamp = _utc_timestamp()

    logger.info("Account sync completed", synced=len(accounts), timestamp=timestamp)
    return {
        "success": True,
        "synced": len(accounts),
        "timestamp": timestamp,
        "preview": [account.to_dict() for account in accounts[:SYNC_PREVIEW_SIZE]],
    }
