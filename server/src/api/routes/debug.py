from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ...services.snapshot_store import SnapshotStore
from ._state import get_snapshot_store

router = APIRouter(tags=["debug"])


@router.get("/debug", summary="Full snapshot of the latest poll")
async def debug_snapshot(store: SnapshotStore = Depends(get_snapshot_store)) -> dict[str, Any]:
    return store.read().to_payload()
