"""Dropped-report notifications."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from feedback_buffer.api.deps import get_coordinator
from feedback_buffer.services.sync_coordinator import SyncCoordinator

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    level: Optional[str] = None,
    coordinator: SyncCoordinator = Depends(get_coordinator),
) -> dict[str, list[dict[str, Any]]]:
    notes = coordinator.notifications.recent(limit, level=level)
    return {"notifications": [note.to_dict() for note in notes]}


__all__ = ["router"]
