from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...models import describe_status
from ...schemas import StatusResponse
from ...services.snapshot_store import SnapshotStore
from ._state import get_snapshot_store

router = APIRouter(tags=["status"])


@router.get("/", response_model=StatusResponse, summary="Aggregated node status for uptime monitors")
async def node_status(store: SnapshotStore = Depends(get_snapshot_store)) -> JSONResponse:
    """Answer with the HTTP status computed by the latest poll.

    200 only when every considered node was online at the last check.
    """
    snapshot = store.read()
    summary = snapshot.nodes_online_summary
    body = StatusResponse(
        status=describe_status(snapshot),
        last_checked_at=snapshot.last_checked_at,
        online_count=summary.online_count,
        total_nodes=summary.total_nodes,
        offline_uuids=list(summary.offline_uuids),
    )
    return JSONResponse(status_code=snapshot.computed_base_status, content=body.model_dump(by_alias=True))
