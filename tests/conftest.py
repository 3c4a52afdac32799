"""Shared pytest fixtures."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, Union

import pytest

from feedback_buffer.db.session import make_engine
from feedback_buffer.models import Destination, MediaItem, PendingSubmission, ReportPayload
from feedback_buffer.services.connectivity import StaticConnectivityProbe
from feedback_buffer.services.notifications import NotificationLog
from feedback_buffer.services.queue_store import PersistentQueueStore
from feedback_buffer.services.retry_policy import RetryPolicy
from feedback_buffer.services.submitter import Delivered, Outcome
from feedback_buffer.services.sync_coordinator import SyncCoordinator

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgo="


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, 0)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0.0) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment


OutcomeSource = Union[Outcome, Iterable[Outcome], Callable[[PendingSubmission], Outcome]]


class FakeSubmitter:
    """Records attempted ids and replies with scripted outcomes."""

    def __init__(self, outcomes: OutcomeSource | None = None) -> None:
        self.calls: list[str] = []
        self.titles: list[str] = []
        self.closed = False
        self.set_outcomes(outcomes if outcomes is not None else Delivered(remote_id="r-1"))

    def set_outcomes(self, outcomes: OutcomeSource) -> None:
        if callable(outcomes):
            self._next = outcomes
        elif isinstance(outcomes, (list, tuple)):
            queue = list(outcomes)
            self._next = lambda record: queue.pop(0)
        else:
            self._next = lambda record: outcomes

    async def attempt(self, record: PendingSubmission) -> Outcome:
        self.calls.append(record.id)
        self.titles.append(record.payload["title"])
        # Suspend like a real network call would.
        await asyncio.sleep(0)
        return self._next(record)

    async def aclose(self) -> None:
        self.closed = True


def make_destination(credential: str = "key-123") -> Destination:
    return Destination(credential=credential, endpoint_base="https://bugs.example.test/api/widget")


def make_payload(title: str = "Checkout button does nothing") -> ReportPayload:
    return ReportPayload(
        title=title,
        description="Clicking pay leaves the spinner running.",
        reporter_email="qa@example.test",
        metadata={"url": "https://shop.example.test/checkout", "viewport": {"width": 1280}},
    )


def make_record(
    record_id: str,
    created_at: datetime,
    title: str | None = None,
    retry_count: int = 0,
    last_attempt_at: datetime | None = None,
    media: list[MediaItem] | None = None,
) -> PendingSubmission:
    destination = make_destination()
    return PendingSubmission(
        id=record_id,
        credential=destination.credential,
        endpoint_base=destination.endpoint_base,
        payload=make_payload(title or f"report {record_id}").model_dump(mode="json"),
        media=[item.model_dump(mode="json") for item in media or []],
        created_at=created_at,
        retry_count=retry_count,
        last_attempt_at=last_attempt_at,
    )


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'buffer.db'}"


@pytest.fixture
def engine(database_url: str):
    engine = make_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> PersistentQueueStore:
    return PersistentQueueStore(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> StaticConnectivityProbe:
    return StaticConnectivityProbe(online=True)


@pytest.fixture
def submitter() -> FakeSubmitter:
    return FakeSubmitter()


@pytest.fixture
def notifications() -> NotificationLog:
    return NotificationLog()


@pytest.fixture
def coordinator(store, submitter, probe, clock, notifications) -> SyncCoordinator:
    return SyncCoordinator(
        store=store,
        submitter=submitter,
        probe=probe,
        clock=clock,
        policy=RetryPolicy(),
        sync_interval_seconds=30,
        notifications=notifications,
    )
