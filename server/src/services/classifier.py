from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Any, List, Mapping

from ..models import NodesSummary, PollOutcome, error_member_set
from .errors import MalformedResultError, RpcProtocolError, TransportError


@dataclass(frozen=True)
class Classification:
    summary: NodesSummary
    computed_status: int
    outcome: PollOutcome


def classify(body: Any, groups: Mapping[str, str], ignore_groups: AbstractSet[str]) -> Classification:
    """Classify a 200 `common:getNodesLatestStatus` body.

    Nodes whose group is in `ignore_groups` are set aside; the rest count as
    online only when their `online` field is exactly true. The result is 200
    only when every considered node is online and at least one is considered.

    Raises `TransportError` for a JSON `null` body, `RpcProtocolError` when
    the body carries an `error` member and `MalformedResultError` when
    `result` is missing or not an object.
    """
    if body is None:
        raise TransportError("Upstream returned a null JSON body", http_status=200)
    if not isinstance(body, dict):
        raise MalformedResultError()
    if error_member_set(body.get("error")):
        raise RpcProtocolError(body["error"])

    result = body.get("result")
    if not isinstance(result, dict):
        raise MalformedResultError()

    total_nodes = len(result)
    if total_nodes == 0:
        return Classification(NodesSummary.empty_result(), 503, PollOutcome.NO_NODES)

    online_count = 0
    offline_uuids: List[str] = []
    ignored_uuids: List[str] = []

    for uuid, node in result.items():
        group = groups.get(uuid)
        if ignore_groups and group and group in ignore_groups:
            ignored_uuids.append(uuid)
            continue

        if isinstance(node, dict) and node.get("online") is True:
            online_count += 1
        else:
            offline_uuids.append(uuid)

    considered = total_nodes - len(ignored_uuids)
    summary = NodesSummary(
        total_nodes=total_nodes,
        online_count=online_count,
        offline_count=considered - online_count,
        offline_uuids=tuple(offline_uuids),
        ignored_count=len(ignored_uuids),
        ignored_uuids=tuple(ignored_uuids),
    )

    if considered == 0:
        return Classification(summary, 503, PollOutcome.ALL_NODES_IGNORED)
    if online_count == considered:
        return Classification(summary, 200, PollOutcome.ALL_ONLINE)
    return Classification(summary, 503, PollOutcome.SOME_OFFLINE)
