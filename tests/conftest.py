import json
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

# Ensure the repository root is importable as a package root (so `import app` works).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.settings import Settings  # noqa: E402
from app.integrations.servicedesk.client import ServiceDeskClient  # noqa: E402

BASE_URL = "https://sdp.example.com"
AUTHTOKEN = "upstream-secret-token"
ADMIN_KEY = "a" * 40
ALLOWED_ORIGIN = "https://dashboard.example.com"


class UpstreamRecorder:
    """MockTransport handler that records every request it answers."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.calls: List[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request):
        self.calls.append(request)
        return self._responder(request)

    def list_info(self, index: int) -> dict:
        return json.loads(self.calls[index].url.params["input_data"])["list_info"]

    def paths(self) -> List[str]:
        return [call.url.path for call in self.calls]


class SleepRecorder:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def page(resource: str, records: list, has_more: bool) -> httpx.Response:
    return httpx.Response(
        200,
        json={resource: records, "list_info": {"has_more_rows": has_more, "row_count": len(records)}},
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        NODE_ENV="test",
        SERVICEDESK_BASE_URL=BASE_URL + "/",
        SERVICEDESK_AUTHTOKEN=AUTHTOKEN,
        ALLOWED_ORIGINS=f"{ALLOWED_ORIGIN}, ,http://localhost:3000",
        ADMIN_SYNC_KEY=ADMIN_KEY,
    )


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def make_client(sleeper: SleepRecorder):
    """Build a ServiceDeskClient wired to an in-memory upstream."""

    def _make(responder, **overrides) -> tuple[ServiceDeskClient, UpstreamRecorder]:
        recorder = UpstreamRecorder(responder)
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        options = {
            "base_url": BASE_URL,
            "authtoken": AUTHTOKEN,
            "http_client": http_client,
            "sleep": sleeper,
        }
        options.update(overrides)
        return ServiceDeskClient(**options), recorder

    return _make


@pytest.fixture()
def upstream_page():
    return page
