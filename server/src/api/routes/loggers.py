from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

router = APIRouter(prefix="/admin/loggers", tags=["admin", "loggers"])


class LoggerLevel(BaseModel):
    name: str = Field(..., description="Logger name, e.g. 'root' or 'services.poller'")
    level: str = Field(..., description="One of CRITICAL/ERROR/WARNING/INFO/DEBUG/NOTSET")


def _resolve_level(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown level: {level}")
    return value


def _effective(logger: logging.Logger, name: str) -> LoggerLevel:
    return LoggerLevel(name=name, level=logging.getLevelName(logger.getEffectiveLevel()))


@router.get("", response_model=list[LoggerLevel])
async def list_loggers() -> list[LoggerLevel]:
    """Return the root logger followed by every registered logger with its effective level."""
    levels = [_effective(logging.getLogger(), "root")]
    for name, candidate in sorted(logging.root.manager.loggerDict.items()):
        # PlaceHolder entries stand in for parent packages without a logger
        if isinstance(candidate, logging.Logger):
            levels.append(_effective(candidate, name))
    return levels


@router.post("", response_model=LoggerLevel)
async def set_logger_level(req: LoggerLevel) -> LoggerLevel:
    """Change a logger's level at runtime, e.g. to watch poll cycles at DEBUG."""
    try:
        level_value = _resolve_level(req.level)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger = logging.getLogger(None if req.name == "root" else req.name)
    logger.setLevel(level_value)
    return _effective(logger, req.name)
