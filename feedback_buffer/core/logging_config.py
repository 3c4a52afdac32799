"""JSON logging for the API and the drain worker, plus the ``/logs`` ring buffer.

Sync activity for a buffered report is logged with ``extra={"record_id": ...}``
so one report's history (buffered, retried, delivered or dropped) can be pulled
back out of the buffer by id.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from feedback_buffer.core.config import settings

_CONFIGURED = False
_LOG_BUFFER: deque[dict[str, Any]] = deque(maxlen=settings.log_buffer_size)


class _ServiceNameFilter(logging.Filter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


class _BufferHandler(logging.Handler):
    """Keeps the newest entries in memory, newest first."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, Any] = {
                "time": datetime.fromtimestamp(record.created, tz=timezone.utc)
                .isoformat()
                .replace("+00:00", "Z"),
                "level": record.levelname,
                "name": record.name,
                "service": getattr(record, "service", None),
                "message": record.getMessage(),
            }
            record_id = getattr(record, "record_id", None)
            if record_id is not None:
                entry["record_id"] = record_id
            _LOG_BUFFER.appendleft(entry)
        except Exception:
            self.handleError(record)


def setup_logging(service_name: Optional[str] = None, level: Optional[str] = None) -> None:
    """Configure root logging once; later calls are ignored."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    service_filter = _ServiceNameFilter(service_name or settings.app_name)

    stream = logging.StreamHandler()
    stream.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(service)s")
    )
    stream.addFilter(service_filter)

    buffer = _BufferHandler()
    buffer.addFilter(service_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stream)
    root.addHandler(buffer)
    root.setLevel((level or settings.log_level).upper())
    logging.captureWarnings(True)
    # httpx logs every request at INFO; the submitter logs outcomes itself.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _CONFIGURED = True


def get_log_buffer(
    limit: int = 100,
    min_level: Optional[str] = None,
    record_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Newest buffered entries, optionally at or above ``min_level`` or for one report."""

    entries = list(_LOG_BUFFER)
    if min_level:
        threshold = logging.getLevelName(min_level.upper())
        if isinstance(threshold, int):
            entries = [e for e in entries if logging.getLevelName(e["level"]) >= threshold]
    if record_id:
        entries = [e for e in entries if e.get("record_id") == record_id]
    return entries[:limit]


def clear_log_buffer() -> None:
    _LOG_BUFFER.clear()


__all__ = ["setup_logging", "get_log_buffer", "clear_log_buffer"]
