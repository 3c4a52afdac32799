"""Read-only view of the local buffer plus manual sync/clear controls."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from feedback_buffer.api.deps import get_coordinator
from feedback_buffer.services.queue_store import QueueStoreError
from feedback_buffer.services.sync_coordinator import SyncCoordinator

router = APIRouter(prefix="/pending", tags=["pending"])


@router.get("")
async def list_pending(coordinator: SyncCoordinator = Depends(get_coordinator)) -> dict[str, Any]:
    try:
        records = await coordinator.get_all()
    except QueueStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"count": len(records), "pending": [record.summary() for record in records]}


@router.get("/count")
async def pending_count(coordinator: SyncCoordinator = Depends(get_coordinator)) -> dict[str, int]:
    """Badge count of reports waiting to be delivered."""
    try:
        return {"count": await coordinator.count()}
    except QueueStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/{record_id}")
async def pending_detail(
    record_id: str, coordinator: SyncCoordinator = Depends(get_coordinator)
) -> dict[str, Any]:
    try:
        record = await coordinator.store.get(record_id)
    except QueueStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail="pending_submission_not_found")
    return record.summary()


@router.post("/sync")
async def sync_now(coordinator: SyncCoordinator = Depends(get_coordinator)) -> dict[str, Any]:
    """Run one sync pass now; reports ``skipped`` if one was already running."""
    skipped = coordinator.is_syncing
    result = await coordinator.run_sync_pass()
    return {**result.as_dict(), "skipped": skipped, "online": coordinator.probe.is_online()}


@router.delete("")
async def clear_pending(coordinator: SyncCoordinator = Depends(get_coordinator)) -> dict[str, int]:
    try:
        return {"cleared": await coordinator.store.clear()}
    except QueueStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


__all__ = ["router"]
