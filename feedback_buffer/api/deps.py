"""API dependencies."""

from __future__ import annotations

from fastapi import Request

from feedback_buffer.services.submission import SubmissionService
from feedback_buffer.services.sync_coordinator import SyncCoordinator


def get_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.coordinator


def get_submission_service(request: Request) -> SubmissionService:
    return SubmissionService(request.app.state.coordinator)
