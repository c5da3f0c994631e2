from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class StatusResponse(BaseModel):
    status: Literal["all_online", "upstream_error", "rpc_error", "some_offline", "error"]
    last_checked_at: Optional[str] = Field(default=None, serialization_alias="lastCheckedAt")
    online_count: int = Field(..., serialization_alias="onlineCount")
    total_nodes: int = Field(..., serialization_alias="totalNodes")
    offline_uuids: List[str] = Field(default_factory=list, serialization_alias="offlineUuids")

    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    ok: bool = True
    last_checked_at: Optional[str] = Field(default=None, serialization_alias="lastCheckedAt")
    poll_interval_ms: int = Field(..., serialization_alias="pollIntervalMs")

    model_config = ConfigDict(populate_by_name=True)
