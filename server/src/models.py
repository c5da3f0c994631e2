from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class PollOutcome(str, Enum):
    """Internal classification tag recorded for each poll cycle.

    Used for logging only; the public status string is derived from the
    snapshot by `describe_status`.
    """

    ALL_ONLINE = "all_online"
    SOME_OFFLINE = "some_offline"
    ALL_NODES_IGNORED = "all_nodes_ignored"
    NO_NODES = "no_nodes"
    RPC_ERROR = "rpc_error"
    INVALID_RESULT = "invalid_result"
    UPSTREAM_5XX_ERROR = "upstream_5xx_error"
    UPSTREAM_404 = "upstream_404"
    UPSTREAM_400 = "upstream_400"
    UPSTREAM_UNAUTHORIZED = "upstream_unauthorized"
    UNEXPECTED_STATUS = "unexpected_status"
    FETCH_ERROR = "fetch_error"


@dataclass(frozen=True)
class NodesSummary:
    """Online/offline breakdown of the nodes reported by the last valid poll.

    `ignored_count` and `ignored_uuids` are None only for the summary written
    when upstream reports no nodes at all; that summary omits both keys.
    """

    total_nodes: int = 0
    online_count: int = 0
    offline_count: int = 0
    offline_uuids: Tuple[str, ...] = ()
    ignored_count: Optional[int] = 0
    ignored_uuids: Optional[Tuple[str, ...]] = ()

    @classmethod
    def empty_result(cls) -> "NodesSummary":
        return cls(ignored_count=None, ignored_uuids=None)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "totalNodes": self.total_nodes,
            "onlineCount": self.online_count,
            "offlineCount": self.offline_count,
            "offlineUuids": list(self.offline_uuids),
        }
        if self.ignored_count is not None:
            payload["ignoredCount"] = self.ignored_count
        if self.ignored_uuids is not None:
            payload["ignoredUuids"] = list(self.ignored_uuids)
        return payload


@dataclass(frozen=True)
class PollSnapshot:
    """Result of the most recent completed poll cycle.

    Instances are immutable; each cycle publishes a new one. On an error path
    exactly one of `rpc_error` / `fetch_error` is set, on success neither is.
    """

    last_checked_at: Optional[str] = None
    upstream_http_status: Optional[int] = None
    rpc_error: Optional[Any] = None
    fetch_error: Optional[str] = None
    nodes_online_summary: NodesSummary = field(default_factory=NodesSummary)
    # 503 until the first poll completes
    computed_base_status: int = 503
    outcome: Optional[PollOutcome] = field(default=None, compare=False)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "lastCheckedAt": self.last_checked_at,
            "upstreamHttpStatus": self.upstream_http_status,
            "rpcError": self.rpc_error,
            "fetchError": self.fetch_error,
            "nodesOnlineSummary": self.nodes_online_summary.to_payload(),
            "computedBaseStatus": self.computed_base_status,
        }


def error_member_set(value: Any) -> bool:
    """Return True when a JSON-RPC `error` member counts as an error.

    Empty objects and arrays count; null, false, zero, NaN and "" do not.
    """
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and value == value
    return True


def describe_status(snapshot: PollSnapshot) -> str:
    """Return the public status string for a snapshot."""
    if snapshot.computed_base_status == 200:
        return "all_online"
    if snapshot.fetch_error:
        return "upstream_error"
    if error_member_set(snapshot.rpc_error):
        return "rpc_error"
    if snapshot.nodes_online_summary.offline_count > 0:
        return "some_offline"
    return "error"
