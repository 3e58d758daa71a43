"""Shared fixtures: a fake Leiga API behind httpx.MockTransport."""

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from leiga_mcp.client import AUTHORIZE_PATH, LeigaClient
from leiga_mcp.config import LeigaSettings
from leiga_mcp.token_store import TokenStore

API_PREFIX = "/openapi/api"


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeLeiga:
    """Records requests and answers them from per-path canned responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, tuple[int, Any]] = {}
        self.ok(AUTHORIZE_PATH, {"accessToken": "tok-1", "expireIn": 7200})

    def ok(self, path: str, data: Any) -> None:
        self.reply(path, {"code": "0", "data": data})

    def reply(self, path: str, body: Any, status_code: int = 200) -> None:
        self.routes[path] = (status_code, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix(API_PREFIX)
        if path not in self.routes:
            return httpx.Response(404, text=f"no route for {path}")
        status_code, body = self.routes[path]
        return httpx.Response(status_code, json=body)

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix(API_PREFIX) for r in self.requests]

    def api_requests(self) -> list[httpx.Request]:
        """Requests other than the token exchange."""
        return [
            r for r in self.requests
            if r.url.path.removeprefix(API_PREFIX) != AUTHORIZE_PATH
        ]


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> LeigaSettings:
    return LeigaSettings(client_id="client-a", secret="s3cret", config_dir=tmp_path / "leiga")


@pytest.fixture
def token_store(settings: LeigaSettings, clock: FakeClock) -> TokenStore:
    return TokenStore(settings.config_dir, clock=clock)


@pytest.fixture
def fake_api() -> FakeLeiga:
    return FakeLeiga()


@pytest.fixture
def client(
    settings: LeigaSettings, fake_api: FakeLeiga, token_store: TokenStore
) -> LeigaClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api))
    return LeigaClient(settings, http_client=http, token_store=token_store)
