"""In-memory log of dropped reports and other buffer alerts.

Drops are otherwise silent to the end user; this capped log is what the
``/notifications`` endpoint serves.  It does not survive a restart.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Deque, Iterable

from feedback_buffer.services.clock import utcnow


@dataclass
class Notification:
    level: str
    message: str
    created_at: datetime
    context: dict | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data


class NotificationLog:
    """Simple capped log for surfacing dropped submissions."""

    def __init__(self, max_items: int = 50) -> None:
        self.max_items = max_items
        self._items: Deque[Notification] = deque(maxlen=max_items)

    def add(self, level: str, message: str, context: dict | None = None) -> Notification:
        note = Notification(level=level, message=message, created_at=utcnow(), context=context)
        self._items.appendleft(note)
        return note

    def recent(self, limit: int | None = None, level: str | None = None) -> Iterable[Notification]:
        items = [note for note in self._items if level is None or note.level == level]
        if limit is None or limit >= len(items):
            return items
        return items[:limit]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


NOTIFICATIONS = NotificationLog()

__all__ = ["Notification", "NotificationLog", "NOTIFICATIONS"]
