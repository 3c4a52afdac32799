"""Buffered report model and the value objects it is built from."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


class ReportPriority(str, Enum):
    LOWEST = "lowest"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HIGHEST = "highest"


class Destination(BaseModel):
    """Which ingestion target a submission belongs to."""

    model_config = ConfigDict(frozen=True)

    credential: str
    endpoint_base: str


class ReportPayload(BaseModel):
    title: str
    description: Optional[str] = None
    priority: ReportPriority = ReportPriority.MEDIUM
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class MediaItem(BaseModel):
    """One screenshot or video, carried as a ``data:`` URI."""

    content: str
    mime_type: str
    annotations: Optional[dict[str, Any]] = None

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")


class PendingSubmission(SQLModel, table=True):
    id: str = Field(primary_key=True, max_length=64)
    credential: str = Field(max_length=255)
    endpoint_base: str = Field(max_length=512)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    media: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Naive UTC.
    created_at: datetime = Field(sa_column=Column(DateTime, index=True, nullable=False))
    retry_count: int = Field(default=0, ge=0)
    last_attempt_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    last_error: Optional[str] = Field(default=None, description="Most recent failure reason")

    @property
    def destination(self) -> Destination:
        return Destination(credential=self.credential, endpoint_base=self.endpoint_base)

    @property
    def report(self) -> ReportPayload:
        return ReportPayload.model_validate(self.payload)

    @property
    def media_items(self) -> list[MediaItem]:
        return [MediaItem.model_validate(item) for item in self.media or []]

    def summary(self) -> dict[str, Any]:
        """Badge/list view without the (potentially large) media bodies."""
        return {
            "id": self.id,
            "endpoint_base": self.endpoint_base,
            "title": (self.payload or {}).get("title"),
            "priority": (self.payload or {}).get("priority"),
            "media_count": len(self.media or []),
            "created_at": self.created_at.isoformat(),
            "retry_count": self.retry_count,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "last_error": self.last_error,
        }


__all__ = ["Destination", "MediaItem", "PendingSubmission", "ReportPayload", "ReportPriority"]
