from __future__ import annotations

import asyncio
from typing import Any, Dict

import httpx

from server.src.core.logging import get_logger

from ..config import Settings
from .errors import TransportError

logger = get_logger(__name__)

GET_NODES_METHOD = "common:getNodes"
GET_NODES_LATEST_STATUS_METHOD = "common:getNodesLatestStatus"


def build_request(method: str, request_id: int, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}


def build_headers(settings: Settings) -> Dict[str, str]:
    """Return the headers sent with every RPC call."""
    headers = {"Content-Type": "application/json"}
    if settings.api_key:
        headers["Authorization"] = f"Bearer {settings.api_key}"
    if settings.cookie:
        headers["Cookie"] = settings.cookie
    return headers


class RpcClient:
    """Posts JSON-RPC 2.0 requests to the upstream `/api/rpc2` endpoint.

    Wraps an `httpx.AsyncClient` owned by the caller for the duration of one
    poll cycle. Every call is bounded by its own timeout; expiry and network
    failures are raised as `TransportError`. HTTP status codes are returned
    untouched so callers decide how to treat them.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._endpoint = settings.rpc_endpoint
        self._headers = build_headers(settings)
        self._timeout = settings.rpc_timeout_seconds

    async def call(self, method: str, request_id: int) -> httpx.Response:
        payload = build_request(method, request_id)
        try:
            return await asyncio.wait_for(
                self._client.post(self._endpoint, json=payload, headers=self._headers),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.debug("RPC %s timed out after %.1fs", method, self._timeout)
            raise TransportError(f"Request timed out after {self._timeout:g}s") from exc
        except httpx.HTTPError as exc:
            logger.debug("RPC %s failed: %s", method, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
