from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamPayloadError,
    UpstreamTimeoutError,
)
from app.core.logging_config import get_logger
from app.core.settings import Settings

from .normalization import NormalizedAccount, normalize_account

logger = get_logger(__name__)

PAGE_SIZE = 100
ACCOUNTS_RESOURCE = "accounts"
REQUESTS_RESOURCE = "requests"


@dataclass(frozen=True)
class ListInfo:
    """The ``list_info`` block ServiceDesk reads from ``input_data``."""

    row_count: int
    start_index: int
    search_fields: Optional[Dict[str, str]] = None
    sort_field: Optional[str] = None
    sort_order: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "row_count": self.row_count,
            "start_index": self.start_index,
        }
        if self.search_fields:
            payload["search_fields"] = dict(self.search_fields)
        if self.sort_field:
            payload["sort_field"] = self.sort_field
        if self.sort_order:
            payload["sort_order"] = self.sort_order
        return payload


@dataclass(frozen=True)
class UpstreamPage:
    records: List[Dict[str, Any]] = field(default_factory=list)
    has_more_rows: bool = False


PageResult = Union[UpstreamPage, UpstreamError]


class ServiceDeskClient:
    """ServiceDesk Plus v3 REST client for the accounts and requests listings.

    Auth: the ``authtoken`` header, which stays server side. Each page is one
    GET with the paging cursor JSON-encoded into the ``input_data`` query
    parameter.
    """

    def __init__(
        self,
        *,
        base_url: str,
        authtoken: str,
        http_client: httpx.AsyncClient,
        timeout_ms: int = 15000,
        retries: int = 2,
        backoff_base_ms: int = 1000,
        accounts_max_pages: int = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not base_url or not authtoken:
            raise ValueError("ServiceDeskClient requires base_url and authtoken")
        self.base_url = base_url.rstrip("/")
        self.http = http_client
        self.timeout_ms = timeout_ms
        self.retries = retries
        self.backoff_base_ms = backoff_base_ms
        self.accounts_max_pages = accounts_max_pages
        self._sleep = sleep
        self._headers = {
            "authtoken": authtoken,
            "Accept": "application/json",
            "User-Agent": "servicedesk-proxy/1.0",
        }

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "ServiceDeskClient":
        return cls(
            base_url=settings.servicedesk_base_url,
            authtoken=settings.servicedesk_authtoken,
            http_client=http_client,
            timeout_ms=settings.upstream_timeout_ms,
            retries=settings.upstream_retries,
            backoff_base_ms=settings.upstream_backoff_base_ms,
            accounts_max_pages=settings.accounts_max_pages,
        )

    async def _send_once(self, request: httpx.Request, timeout_ms: int) -> httpx.Response:
        try:
            return await asyncio.wait_for(self.http.send(request), timeout=timeout_ms / 1000)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamTimeoutError(f"Request timeout after {timeout_ms}ms") from exc

    async def fetch_with_retry(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        retries: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ) -> httpx.Response:
        """GET ``url`` with a per-attempt timeout and exponential backoff.

        Transport errors are retried up to ``retries`` times, waiting
        ``2**attempt`` backoff units in between. A timeout raises
        ``UpstreamTimeoutError`` straight away. Non-2xx responses are returned
        as-is for the caller to judge.
        """
        retries = self.retries if retries is None else retries
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        request = self.http.build_request("GET", url, params=params, headers=headers)

        def _log_retry(retry_state: RetryCallState) -> None:
            backoff_ms = int(retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"Retrying request in {backoff_ms}ms",
                url=url,
                attempt=retry_state.attempt_number,
                backoff_ms=backoff_ms,
                error=type(error).__name__ if error else None,
            )

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=self.backoff_base_ms / 1000),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=_log_retry,
            sleep=self._sleep,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._send_once(request, timeout_ms)
        return response

    async def fetch_page(self, resource: str, list_info: ListInfo) -> PageResult:
        """Fetch one listing page; failures are returned, not raised."""
        label = resource.capitalize()
        url = f"{self.base_url}/api/v3/{resource}"
        params = {"input_data": json.dumps({"list_info": list_info.to_payload()})}

        try:
            response = await self.fetch_with_retry(url, params=params, headers=self._headers)
        except UpstreamError as exc:
            exc.resource = resource
            return exc
        except httpx.TransportError as exc:
            return UpstreamConnectionError(
                f"{label} fetch failed: {type(exc).__name__}", resource
            )

        if not response.is_success:
            # Body stays in the server log; it never reaches API clients.
            logger.warning(
                "Upstream returned an error status",
                resource=resource,
                status=response.status_code,
                body_preview=response.text[:200],
            )
            return UpstreamHTTPError(
                f"{label} fetch failed: {response.reason_phrase}",
                resource,
                response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return UpstreamPayloadError(f"{label} fetch failed: invalid JSON", resource)
        if not isinstance(data, dict):
            return UpstreamPayloadError(f"{label} fetch failed: unexpected payload", resource)

        raw_records = data.get(resource)
        records = (
            [r for r in raw_records if isinstance(r, dict)]
            if isinstance(raw_records, list)
            else []
        )
        page_info = data.get("list_info")
        has_more = isinstance(page_info, dict) and page_info.get("has_more_rows") is True
        return UpstreamPage(records=records, has_more_rows=has_more)

    async def fetch_all_accounts(self, max_pages: Optional[int] = None) -> List[NormalizedAccount]:
        """Return every account, reading at most ``max_pages`` pages.

        Hitting the page cap ends the listing quietly. Any failed page aborts
        the whole call.
        """
        max_pages = self.accounts_max_pages if max_pages is None else max_pages
        accounts: List[NormalizedAccount] = []
        page = 1
        has_more = True

        while has_more and page <= max_pages:
            result = await self.fetch_page(
                ACCOUNTS_RESOURCE,
                ListInfo(row_count=PAGE_SIZE, start_index=(page - 1) * PAGE_SIZE + 1),
            )
            if isinstance(result, UpstreamError):
                logger.error("Accounts fetch failed", page=page, error=result.message)
                raise result

            accounts.extend(normalize_account(raw) for raw in result.records)
            has_more = result.has_more_rows
            page += 1

        return accounts

    async def fetch_all_requests(self, account_name: str) -> List[Dict[str, Any]]:
        """Return every raw request for ``account_name``; there is no page cap."""
        requests: List[Dict[str, Any]] = []
        start_index = 1
        has_more = True

        logger.info("Starting requests fetch", account=account_name)

        while has_more:
            result = await self.fetch_page(
                REQUESTS_RESOURCE,
                ListInfo(
                    row_count=PAGE_SIZE,
                    start_index=start_index,
                    search_fields={"account.name": account_name},
                ),
            )
            if isinstance(result, UpstreamError):
                logger.error("Requests fetch failed", start_index=start_index, error=result.message)
                raise result

            requests.extend(result.records)
            has_more = result.has_more_rows
            start_index += PAGE_SIZE

        logger.info("Requests fetch completed", total=len(requests))
        return requests
