"""Durable keyed storage for buffered submissions.

Backed by a SQLModel table so records survive restarts of the host process.
Session work is blocking, so each operation is pushed to a worker thread and
awaited; every call is therefore a suspension point for the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from feedback_buffer.db.session import engine as default_engine
from feedback_buffer.db.session import get_session, init_db
from feedback_buffer.models import PendingSubmission

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueueStoreError(RuntimeError):
    """Raised when the underlying database rejects a queue operation."""


class PersistentQueueStore:
    """Insert/read/delete access to the ``pendingsubmission`` table."""

    def __init__(self, engine: Engine | None = None, create_tables: bool = True) -> None:
        self.engine = engine or default_engine
        if create_tables:
            init_db(self.engine)

    async def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        def _call() -> T:
            with get_session(self.engine) as session:
                try:
                    return work(session)
                except SQLAlchemyError:
                    session.rollback()
                    raise

        try:
            return await asyncio.to_thread(_call)
        except SQLAlchemyError as exc:
            logger.error("Queue store %s failed: %s", operation, exc)
            raise QueueStoreError(f"{operation} failed: {exc}") from exc

    async def put(self, record: PendingSubmission) -> None:
        """Insert or overwrite ``record`` by id (last write wins)."""

        def _put(session: Session) -> None:
            # merge() copies state onto a session-owned instance, so the
            # caller's object is never attached or mutated by a failed commit.
            session.merge(record)
            session.commit()

        await self._run("put", _put)

    async def get(self, record_id: str) -> Optional[PendingSubmission]:
        return await self._run("get", lambda session: session.get(PendingSubmission, record_id))

    async def get_all(self) -> list[PendingSubmission]:
        """All records, oldest ``created_at`` first."""

        def _get_all(session: Session) -> list[PendingSubmission]:
            statement = select(PendingSubmission).order_by(
                PendingSubmission.created_at, PendingSubmission.id
            )
            return list(session.exec(statement).all())

        return await self._run("get_all", _get_all)

    async def delete(self, record_id: str) -> bool:
        """Remove a record; returns False when it was already gone."""

        def _delete(session: Session) -> bool:
            record = session.get(PendingSubmission, record_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

        return await self._run("delete", _delete)

    async def count(self) -> int:
        def _count(session: Session) -> int:
            return int(session.exec(select(func.count()).select_from(PendingSubmission)).one())

        return await self._run("count", _count)

    async def clear(self) -> int:
        def _clear(session: Session) -> int:
            records = session.exec(select(PendingSubmission)).all()
            for record in records:
                session.delete(record)
            session.commit()
            return len(records)

        removed = await self._run("clear", _clear)
        logger.info("Cleared %s buffered submissions", removed)
        return removed


__all__ = ["PersistentQueueStore", "QueueStoreError"]
