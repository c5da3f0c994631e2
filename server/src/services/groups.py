from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from server.src.core.logging import get_logger

from .errors import TransportError
from .rpc import GET_NODES_METHOD, RpcClient

logger = get_logger(__name__)

GROUP_LOOKUP_REQUEST_ID = 1


@dataclass(frozen=True)
class NodeGroupLookup:
    """Outcome of the best-effort group lookup.

    `groups` maps node UUID to group label and is empty whenever the lookup
    failed; `error` describes why in that case.
    """

    groups: Mapping[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_node_groups(body: object) -> Optional[Dict[str, str]]:
    """Build the uuid -> group map from a `common:getNodes` response body.

    Returns None when the body has no usable `result` object. Entries without
    a non-empty string group are skipped.
    """
    if not isinstance(body, dict):
        return None
    result = body.get("result")
    if not isinstance(result, dict):
        return None

    groups: Dict[str, str] = {}
    for uuid, node in result.items():
        if not isinstance(node, dict):
            continue
        group = node.get("group")
        if isinstance(group, str) and group:
            groups[uuid] = group
    return groups


class GroupResolver:
    """Looks up each node's group label; never raises."""

    def __init__(self, rpc: RpcClient) -> None:
        self._rpc = rpc

    async def resolve(self) -> NodeGroupLookup:
        try:
            response = await self._rpc.call(GET_NODES_METHOD, GROUP_LOOKUP_REQUEST_ID)
        except TransportError as exc:
            logger.debug("Group lookup failed, continuing without groups: %s", exc)
            return NodeGroupLookup(error=str(exc))

        if response.status_code != 200:
            logger.debug("Group lookup returned HTTP %d, continuing without groups", response.status_code)
            return NodeGroupLookup(error=f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            logger.debug("Group lookup returned a non-JSON body, continuing without groups")
            return NodeGroupLookup(error="invalid JSON")

        groups = parse_node_groups(body)
        if groups is None:
            logger.debug("Group lookup returned no result object, continuing without groups")
            return NodeGroupLookup(error="invalid or missing result")

        return NodeGroupLookup(groups=groups)
