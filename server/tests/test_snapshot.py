from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from server.src.core.time import isoformat_utc
from server.src.models import NodesSummary, PollSnapshot, describe_status
from server.src.services.snapshot_store import SnapshotStore


def test_store_starts_with_pre_poll_default() -> None:
    snapshot = SnapshotStore().read()

    assert snapshot.computed_base_status == 503
    assert snapshot.last_checked_at is None
    assert snapshot.upstream_http_status is None
    assert snapshot.nodes_online_summary == NodesSummary()


def test_replace_returns_previous() -> None:
    store = SnapshotStore()
    first = store.read()
    new = PollSnapshot(computed_base_status=200, last_checked_at="2025-01-01T00:00:00.000Z")

    assert store.replace(new) is first
    assert store.read() is new


@pytest.mark.asyncio
async def test_readers_only_see_complete_snapshots() -> None:
    store = SnapshotStore()
    snapshots = [
        PollSnapshot(
            nodes_online_summary=NodesSummary(total_nodes=n, online_count=n),
            computed_base_status=200,
        )
        for n in range(1, 50)
    ]

    async def writer() -> None:
        for snapshot in snapshots:
            store.replace(snapshot)
            await asyncio.sleep(0)

    seen = []

    async def reader() -> None:
        for _ in range(100):
            seen.append(store.read())
            await asyncio.sleep(0)

    await asyncio.gather(writer(), reader(), reader())

    for snapshot in seen:
        summary = snapshot.nodes_online_summary
        assert summary.total_nodes == summary.online_count + summary.offline_count + summary.ignored_count


def test_snapshot_is_immutable() -> None:
    snapshot = PollSnapshot()

    with pytest.raises(AttributeError):
        snapshot.computed_base_status = 200  # type: ignore[misc]


@pytest.mark.parametrize(
    ("snapshot", "expected"),
    [
        (PollSnapshot(computed_base_status=200, fetch_error="ignored"), "all_online"),
        (PollSnapshot(fetch_error="boom", rpc_error={"code": 1}), "upstream_error"),
        (PollSnapshot(rpc_error={"code": 1}, computed_base_status=502), "rpc_error"),
        (PollSnapshot(rpc_error={}, computed_base_status=502), "rpc_error"),
        (PollSnapshot(rpc_error=[], computed_base_status=502), "rpc_error"),
        (PollSnapshot(nodes_online_summary=NodesSummary(total_nodes=1, offline_count=1, offline_uuids=("u1",))), "some_offline"),
        (PollSnapshot(), "error"),
    ],
)
def test_describe_status(snapshot, expected) -> None:
    assert describe_status(snapshot) == expected


def test_isoformat_utc_matches_javascript_iso_strings() -> None:
    value = datetime(2025, 3, 4, 5, 6, 7, 891234, tzinfo=timezone.utc)

    assert isoformat_utc(value) == "2025-03-04T05:06:07.891Z"
