"""Submit endpoint: deliver now or buffer for later."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from feedback_buffer.api.deps import get_submission_service
from feedback_buffer.core.config import settings
from feedback_buffer.models import Destination, MediaItem, ReportPayload
from feedback_buffer.services.queue_store import QueueStoreError
from feedback_buffer.services.submission import SubmissionRejected, SubmissionService

router = APIRouter(prefix="/reports", tags=["reports"])


class SubmitReportRequest(BaseModel):
    report: ReportPayload
    media: list[MediaItem] = Field(default_factory=list)
    destination: Optional[Destination] = None


@router.post("")
async def submit_report(
    body: SubmitReportRequest,
    service: SubmissionService = Depends(get_submission_service),
) -> dict[str, Any]:
    destination = body.destination or Destination(
        credential=settings.api_key, endpoint_base=settings.endpoint_base
    )
    if not destination.credential:
        raise HTTPException(status_code=400, detail="api_key_not_configured")
    try:
        response = await service.submit(destination, body.report, body.media)
    except SubmissionRejected as exc:
        raise HTTPException(status_code=422, detail=exc.reason) from exc
    except QueueStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return asdict(response)


__all__ = ["router"]
