from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..models import PollOutcome
from .errors import TransportError, UpstreamHttpError
from .rpc import GET_NODES_LATEST_STATUS_METHOD, RpcClient

STATUS_REQUEST_ID = 2


def map_http_status(status_code: int) -> Optional[Tuple[int, PollOutcome]]:
    """Map a non-200 upstream status to (computed status, outcome).

    Returns None for 200. The checks run in a fixed order and always before
    the body is looked at, so a 5xx carrying a JSON-RPC error is still a 503.
    """
    if status_code >= 500:
        return 503, PollOutcome.UPSTREAM_5XX_ERROR
    if status_code == 404:
        return 404, PollOutcome.UPSTREAM_404
    if status_code == 400:
        return 400, PollOutcome.UPSTREAM_400
    if status_code in (401, 403):
        return 401, PollOutcome.UPSTREAM_UNAUTHORIZED
    if status_code == 200:
        return None
    return 503, PollOutcome.UNEXPECTED_STATUS


@dataclass(frozen=True)
class StatusResponse:
    """A 200 answer to the status RPC with its decoded body."""

    http_status: int
    body: Any


class StatusFetcher:
    """Performs the authoritative `common:getNodesLatestStatus` call."""

    def __init__(self, rpc: RpcClient) -> None:
        self._rpc = rpc

    async def fetch(self) -> StatusResponse:
        """Return the decoded body of a 200 response.

        Raises `TransportError` when the call never completes or the body is
        not JSON, and `UpstreamHttpError` for any other HTTP status.
        """
        response = await self._rpc.call(GET_NODES_LATEST_STATUS_METHOD, STATUS_REQUEST_ID)

        mapped = map_http_status(response.status_code)
        if mapped is not None:
            computed_status, outcome = mapped
            raise UpstreamHttpError(response.status_code, outcome=outcome, computed_status=computed_status)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON in upstream response: {exc}", http_status=response.status_code) from exc

        return StatusResponse(http_status=response.status_code, body=body)
