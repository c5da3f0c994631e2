from __future__ import annotations

from fastapi import HTTPException, Request, status

from ...config import Settings
from ...services.snapshot_store import SnapshotStore


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if isinstance(settings, Settings):
        return settings
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Application settings unavailable")


def get_snapshot_store(request: Request) -> SnapshotStore:
    store = getattr(request.app.state, "snapshot_store", None)
    if isinstance(store, SnapshotStore):
        return store
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Snapshot store unavailable")
