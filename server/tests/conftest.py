from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from server.src.config import Settings

BASE_URL = "http://upstream.example"

Reply = Union[httpx.Response, Callable[[httpx.Request], Any], Exception]


class FakeUpstream:
    """In-process JSON-RPC endpoint keyed by method name.

    Each reply is an `httpx.Response`, an exception to raise (e.g.
    `httpx.ConnectError`), or a callable (sync or async) returning a response.
    Methods without a reply answer 404.
    """

    def __init__(self) -> None:
        self.replies: Dict[str, Reply] = {}
        self.requests: List[httpx.Request] = []

    def reply(self, method: str, status_code: int = 200, *, json_body: Any = None, content: Optional[bytes] = None) -> None:
        if content is not None:
            self.replies[method] = httpx.Response(status_code, content=content)
        else:
            self.replies[method] = httpx.Response(status_code, json=json_body)

    def nodes(self, groups: Dict[str, Optional[str]]) -> None:
        """Answer common:getNodes with the given uuid -> group labels."""
        result = {uuid: ({"group": group} if group is not None else {}) for uuid, group in groups.items()}
        self.reply("common:getNodes", json_body={"jsonrpc": "2.0", "id": 1, "result": result})

    def status(self, result: Any) -> None:
        """Answer common:getNodesLatestStatus with the given result member."""
        self.reply("common:getNodesLatestStatus", json_body={"jsonrpc": "2.0", "id": 2, "result": result})

    def methods(self) -> List[str]:
        return [json.loads(r.content)["method"] for r in self.requests]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = json.loads(request.content)["method"]
        reply = self.replies.get(method)
        if reply is None:
            return httpx.Response(404, json={"detail": "not found"})
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # Responses are single-use once read; hand out a fresh copy.
            return httpx.Response(reply.status_code, content=reply.content, headers=reply.headers)
        result = reply(request)
        if hasattr(result, "__await__"):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep developer env vars and .env.local files out of the tests."""
    for var in ("BASE_API_URL", "POLL_INTERVAL_MS", "PORT", "HOST", "API_KEY", "COOKIE", "IGNORE_GROUPS", "LOG_LEVEL", "RPC_TIMEOUT_SECONDS"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        overrides.setdefault("base_api_url", BASE_URL)
        return Settings(**overrides)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()
