"""Log buffer endpoints."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Query

from feedback_buffer.core.logging_config import get_log_buffer

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("")
def list_logs(
    limit: int = Query(100, ge=1, le=500),
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
    record_id: Optional[str] = Query(None, description="Only entries about one buffered report"),
) -> dict[str, list[dict[str, Any]]]:
    return {"logs": get_log_buffer(limit=limit, min_level=level, record_id=record_id)}


__all__ = ["router"]
