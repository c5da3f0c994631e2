from __future__ import annotations

from fastapi import APIRouter, Depends

from ...config import Settings
from ...schemas import HealthResponse
from ...services.snapshot_store import SnapshotStore
from ._state import get_settings, get_snapshot_store

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Application health probe")
async def healthcheck(
    store: SnapshotStore = Depends(get_snapshot_store),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """Liveness probe; always 200 regardless of upstream state."""
    return HealthResponse(
        ok=True,
        last_checked_at=store.read().last_checked_at,
        poll_interval_ms=settings.poll_interval_ms,
    )
