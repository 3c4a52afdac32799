"""User-facing submit: try once right away, buffer for later on failure."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from feedback_buffer.models import Destination, MediaItem, PendingSubmission, ReportPayload
from feedback_buffer.services.submitter import Delivered, TerminalFailure
from feedback_buffer.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Report saved. It will be submitted when you're back online."
CONNECTION_MESSAGE = "Report saved. It will be submitted when the connection is restored."


class SubmissionRejected(Exception):
    """The ingestion endpoint refused the report; retrying cannot help."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass
class SubmitResponse:
    success: bool
    report_id: Optional[str] = None
    message: Optional[str] = None
    queued: bool = False
    pending_id: Optional[str] = None


class SubmissionService:
    def __init__(self, coordinator: SyncCoordinator) -> None:
        self.coordinator = coordinator

    async def submit(
        self,
        destination: Destination,
        payload: ReportPayload,
        media: Iterable[MediaItem] = (),
    ) -> SubmitResponse:
        media = list(media)
        if not self.coordinator.probe.is_online():
            logger.info("Offline, buffering report for later submission")
            return await self._buffer(destination, payload, media, OFFLINE_MESSAGE)

        # Throwaway record: immediate success never touches the store.
        draft = PendingSubmission(
            id="immediate",
            credential=destination.credential,
            endpoint_base=destination.endpoint_base,
            payload=payload.model_dump(mode="json"),
            media=[item.model_dump(mode="json") for item in media],
            created_at=self.coordinator.clock.now(),
        )
        outcome = await self.coordinator.submitter.attempt(draft)
        if isinstance(outcome, Delivered):
            return SubmitResponse(success=True, report_id=outcome.remote_id)
        if isinstance(outcome, TerminalFailure):
            logger.warning("Report rejected on submit: %s", outcome.reason)
            raise SubmissionRejected(outcome.reason)

        logger.info("Submit failed (%s), buffering report for later submission", outcome.reason)
        return await self._buffer(destination, payload, media, CONNECTION_MESSAGE)

    async def _buffer(
        self,
        destination: Destination,
        payload: ReportPayload,
        media: list[MediaItem],
        message: str,
    ) -> SubmitResponse:
        record = await self.coordinator.buffer_and_trigger(destination, payload, media)
        return SubmitResponse(success=True, message=message, queued=True, pending_id=record.id)


__all__ = ["SubmissionRejected", "SubmissionService", "SubmitResponse"]
