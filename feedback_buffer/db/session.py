"""SQLModel engine and session management for the local buffer database."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from feedback_buffer.core.config import settings


def make_engine(database_url: str | None = None) -> Engine:
    """Create an engine for ``database_url`` (defaults to settings).

    SQLite connections are used from worker threads by the queue store, so
    the same-thread check is disabled for them.
    """
    url = database_url or settings.database_url
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=False, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine()


def init_db(target: Engine | None = None) -> None:
    # Registers the table on SQLModel.metadata before create_all.
    from feedback_buffer.models import PendingSubmission  # noqa: F401

    SQLModel.metadata.create_all(target or engine)


@contextmanager
def get_session(target: Engine | None = None) -> Iterator[Session]:
    """Get a database session as a context manager.

    Pass ``target`` to bind to an engine other than the module default,
    which is how the queue store and the tests isolate their databases.
    """
    session = Session(target or engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


__all__ = ["engine", "make_engine", "init_db", "get_session"]
