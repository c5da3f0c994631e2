from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from server.src.models import PollOutcome
from server.src.services.errors import TransportError, UpstreamHttpError
from server.src.services.rpc import RpcClient, build_headers
from server.src.services.status_fetcher import StatusFetcher, map_http_status


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (500, (503, PollOutcome.UPSTREAM_5XX_ERROR)),
        (502, (503, PollOutcome.UPSTREAM_5XX_ERROR)),
        (599, (503, PollOutcome.UPSTREAM_5XX_ERROR)),
        (404, (404, PollOutcome.UPSTREAM_404)),
        (400, (400, PollOutcome.UPSTREAM_400)),
        (401, (401, PollOutcome.UPSTREAM_UNAUTHORIZED)),
        (403, (401, PollOutcome.UPSTREAM_UNAUTHORIZED)),
        (204, (503, PollOutcome.UNEXPECTED_STATUS)),
        (302, (503, PollOutcome.UNEXPECTED_STATUS)),
        (418, (503, PollOutcome.UNEXPECTED_STATUS)),
        (200, None),
    ],
)
def test_map_http_status(status_code, expected) -> None:
    assert map_http_status(status_code) == expected


def test_headers_include_credentials_when_configured(make_settings) -> None:
    headers = build_headers(make_settings(api_key="secret", cookie="session=abc"))

    assert headers == {
        "Content-Type": "application/json",
        "Authorization": "Bearer secret",
        "Cookie": "session=abc",
    }


def test_headers_without_credentials(settings) -> None:
    assert build_headers(settings) == {"Content-Type": "application/json"}


@pytest.mark.asyncio
async def test_fetch_returns_body_and_sends_auth(make_settings, upstream) -> None:
    settings = make_settings(api_key="secret", cookie="session=abc")
    upstream.status({"u1": {"online": True}})

    async with httpx.AsyncClient(transport=upstream.transport) as client:
        response = await StatusFetcher(RpcClient(client, settings)).fetch()

    assert response.http_status == 200
    assert response.body["result"] == {"u1": {"online": True}}

    request = upstream.requests[0]
    assert request.headers["authorization"] == "Bearer secret"
    assert request.headers["cookie"] == "session=abc"
    assert json.loads(request.content) == {
        "jsonrpc": "2.0",
        "id": 2,
        "method": "common:getNodesLatestStatus",
        "params": {},
    }


@pytest.mark.asyncio
async def test_server_error_wins_over_rpc_error_body(settings, upstream) -> None:
    upstream.reply(
        "common:getNodesLatestStatus",
        500,
        json_body={"jsonrpc": "2.0", "id": 2, "error": {"code": -32000, "message": "boom"}},
    )

    async with httpx.AsyncClient(transport=upstream.transport) as client:
        with pytest.raises(UpstreamHttpError) as info:
            await StatusFetcher(RpcClient(client, settings)).fetch()

    assert info.value.http_status == 500
    assert info.value.computed_status == 503
    assert info.value.outcome is PollOutcome.UPSTREAM_5XX_ERROR


@pytest.mark.asyncio
async def test_invalid_json_is_a_transport_error(settings, upstream) -> None:
    upstream.reply("common:getNodesLatestStatus", content=b"not-json")

    async with httpx.AsyncClient(transport=upstream.transport) as client:
        with pytest.raises(TransportError) as info:
            await StatusFetcher(RpcClient(client, settings)).fetch()

    assert info.value.http_status == 200
    assert info.value.computed_status == 503


@pytest.mark.asyncio
async def test_slow_upstream_times_out(make_settings, upstream) -> None:
    settings = make_settings(rpc_timeout_seconds=0.05)

    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"result": {}})

    upstream.replies["common:getNodesLatestStatus"] = slow

    async with httpx.AsyncClient(transport=upstream.transport) as client:
        with pytest.raises(TransportError) as info:
            await StatusFetcher(RpcClient(client, settings)).fetch()

    assert "timed out" in str(info.value)
    assert info.value.http_status is None
