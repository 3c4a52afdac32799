"""Database models."""

from .pending import Destination, MediaItem, PendingSubmission, ReportPayload, ReportPriority

__all__ = [
    "Destination",
    "MediaItem",
    "PendingSubmission",
    "ReportPayload",
    "ReportPriority",
]
