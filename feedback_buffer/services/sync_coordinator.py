"""Drains the local submission buffer into the ingestion endpoint.

The coordinator is the only writer to the queue store during delivery and
owns the single-flight guard: at most one sync pass runs at a time no matter
how many triggers (connectivity restored, periodic timer, fresh enqueue)
fire together.  All of this runs on one asyncio event loop, so a plain
boolean set before the first ``await`` is enough to make the check-and-set
atomic.

Per-record lifecycle (derived from ``retry_count``/``last_attempt_at``)::

    Pending -> Attempting -> Delivered          (removed)
                          -> RetryScheduled     (retry_count + 1, back to Pending)
                          -> Dropped            (removed: rejected or retries exhausted)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Optional

from feedback_buffer.core.config import Settings, settings
from feedback_buffer.db.session import make_engine
from feedback_buffer.models import Destination, MediaItem, PendingSubmission, ReportPayload
from feedback_buffer.services.clock import Clock, SystemClock
from feedback_buffer.services.connectivity import (
    ConnectivityProbe,
    HttpConnectivityProbe,
    StaticConnectivityProbe,
)
from feedback_buffer.services.metrics import (
    DELIVERED_TOTAL,
    DROPPED_TOTAL,
    PENDING_SUBMISSIONS,
    RETRIES_TOTAL,
    SYNC_PASS_SECONDS,
)
from feedback_buffer.services.notifications import NOTIFICATIONS, NotificationLog
from feedback_buffer.services.queue_store import PersistentQueueStore, QueueStoreError
from feedback_buffer.services.retry_policy import RetryPolicy
from feedback_buffer.services.submitter import (
    Delivered,
    Outcome,
    RetryableFailure,
    Submitter,
    TerminalFailure,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    delivered: int = 0
    dropped: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class SyncCoordinator:
    """Buffers failed submissions and replays them with exponential backoff."""

    def __init__(
        self,
        store: PersistentQueueStore,
        submitter: Submitter,
        probe: ConnectivityProbe,
        clock: Clock | None = None,
        policy: RetryPolicy | None = None,
        sync_interval_seconds: float | None = None,
        notifications: NotificationLog | None = None,
    ) -> None:
        self.store = store
        self.submitter = submitter
        self.probe = probe
        self.clock = clock or SystemClock()
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.sync_interval_seconds = sync_interval_seconds or settings.sync_interval_seconds
        self.notifications = notifications if notifications is not None else NOTIFICATIONS

        self._syncing = False
        self._rerun_requested = False
        self._timer_task: Optional[asyncio.Task[None]] = None
        self._unsubscribe_online: Any = None
        self._background: set[asyncio.Task[SyncResult]] = set()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "SyncCoordinator":
        """Wire a coordinator from configuration (SQLite store, httpx submitter).

        Uses the HTTP probe when ``connectivity_check_url`` is set, otherwise a
        static probe that assumes the host is online.
        """
        config = config or settings
        probe: ConnectivityProbe
        if config.connectivity_check_url:
            probe = HttpConnectivityProbe(
                url=config.connectivity_check_url,
                interval_seconds=config.connectivity_check_interval,
                timeout=config.connectivity_check_timeout,
            )
        else:
            probe = StaticConnectivityProbe(online=True)
        return cls(
            store=PersistentQueueStore(make_engine(config.database_url)),
            submitter=Submitter(timeout=config.submit_timeout),
            probe=probe,
            policy=RetryPolicy.from_settings(config),
            sync_interval_seconds=config.sync_interval_seconds,
        )

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def auto_sync_running(self) -> bool:
        return self._timer_task is not None

    # ------------------------------------------------------------------
    # Buffering
    # ------------------------------------------------------------------

    async def buffer_and_trigger(
        self,
        destination: Destination,
        payload: ReportPayload,
        media: Iterable[MediaItem] = (),
    ) -> PendingSubmission:
        """Persist a submission and kick off a background sync pass.

        Returns once the record is durable; delivery happens later.  Storage
        errors propagate so the caller can tell the user nothing was saved.
        """
        record = PendingSubmission(
            id=uuid.uuid4().hex,
            credential=destination.credential,
            endpoint_base=destination.endpoint_base,
            payload=payload.model_dump(mode="json"),
            media=[item.model_dump(mode="json") for item in media],
            created_at=self.clock.now(),
            retry_count=0,
        )
        await self.store.put(record)
        logger.info(
            "Report buffered for later submission: %s", record.id, extra={"record_id": record.id}
        )
        self.trigger()
        return record

    def trigger(self) -> Optional[asyncio.Task[SyncResult]]:
        """Schedule a pass without waiting for it.

        If a pass is already running, another one is queued to start right
        after it so freshly buffered records are not left for the timer.
        """
        if self._syncing:
            self._rerun_requested = True
            return None
        task = asyncio.get_running_loop().create_task(self.run_sync_pass())
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[SyncResult]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background sync pass failed", exc_info=exc)

    async def wait_for_background(self) -> None:
        """Wait until every scheduled pass (including queued reruns) has finished."""
        while True:
            pending = [task for task in self._background if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Sync pass
    # ------------------------------------------------------------------

    async def run_sync_pass(self) -> SyncResult:
        """Attempt every eligible buffered submission once, oldest first."""
        if self._syncing:
            logger.debug("Sync pass already in progress; skipping")
            return SyncResult()
        self._syncing = True
        try:
            if not self.probe.is_online():
                logger.info("Offline, skipping sync")
                return SyncResult()
            started = time.perf_counter()
            result = await self._drain()
            SYNC_PASS_SECONDS.observe(time.perf_counter() - started)
            return result
        finally:
            self._syncing = False
            if self._rerun_requested:
                self._rerun_requested = False
                self.trigger()

    async def _drain(self) -> SyncResult:
        result = SyncResult()
        try:
            records = await self.store.get_all()
        except QueueStoreError as exc:
            logger.error("Could not read buffered submissions: %s", exc)
            return result

        now = self.clock.now()
        eligible = [record for record in records if self.policy.is_eligible(record, now)]
        if not eligible:
            await self._update_pending_gauge()
            return result

        logger.info("Syncing %s of %s pending reports", len(eligible), len(records))
        for record in eligible:
            if not self.probe.is_online():
                logger.info("Connectivity lost mid-pass; leaving %s for later", record.id)
                break
            outcome = await self._attempt(record)
            if isinstance(outcome, Delivered):
                await self._remove(record)
                result.delivered += 1
                DELIVERED_TOTAL.inc()
                logger.info(
                    "Successfully synced report %s (remote id %s)", record.id, outcome.remote_id,
                    extra={"record_id": record.id},
                )
            elif isinstance(outcome, TerminalFailure):
                await self._drop(record, "rejected", outcome.reason, level="error")
                result.dropped += 1
            else:
                if await self._reschedule(record, outcome.reason):
                    result.dropped += 1

        await self._update_pending_gauge()
        if result.delivered or result.dropped:
            logger.info(
                "Sync pass finished: delivered=%s dropped=%s", result.delivered, result.dropped
            )
        return result

    async def _attempt(self, record: PendingSubmission) -> Outcome:
        try:
            return await self.submitter.attempt(record)
        except Exception as exc:  # pragma: no cover
            logger.exception("Submitter raised for %s", record.id, extra={"record_id": record.id})
            return RetryableFailure(reason=f"unexpected error: {exc}")

    async def _reschedule(self, record: PendingSubmission, reason: str) -> bool:
        """Record a retryable failure; returns True when the record was dropped."""
        record.retry_count += 1
        record.last_attempt_at = self.clock.now()
        record.last_error = reason

        if self.policy.is_exhausted(record.retry_count):
            await self._drop(record, "exhausted", reason, level="warn")
            return True

        try:
            await self.store.put(record)
        except QueueStoreError as exc:
            logger.error(
                "Could not persist retry state for %s: %s",
                record.id,
                exc,
                extra={"record_id": record.id},
            )
        RETRIES_TOTAL.inc()
        logger.info(
            "Report retry scheduled (attempt %s/%s, next at %s): %s (%s)",
            record.retry_count,
            self.policy.max_retries,
            self.policy.next_eligible_at(record.retry_count, record.last_attempt_at).isoformat(),
            record.id,
            reason,
            extra={"record_id": record.id},
        )
        return False

    async def _drop(self, record: PendingSubmission, kind: str, reason: str, level: str) -> None:
        await self._remove(record)
        DROPPED_TOTAL.labels(reason=kind).inc()
        context = {
            "id": record.id,
            "title": (record.payload or {}).get("title"),
            "retry_count": record.retry_count,
            "reason": reason,
        }
        if kind == "exhausted":
            logger.warning(
                "Max retries exceeded, dropping report %s after %s attempts: %s",
                record.id,
                record.retry_count,
                reason,
                extra={"record_id": record.id},
            )
            message = "Report dropped after exhausting retries"
        else:
            logger.error(
                "Report %s rejected by ingestion endpoint, dropping: %s",
                record.id,
                reason,
                extra={"record_id": record.id},
            )
            message = "Report rejected by ingestion endpoint"
        self.notifications.add(level, message, context)

    async def _remove(self, record: PendingSubmission) -> None:
        try:
            await self.store.delete(record.id)
        except QueueStoreError as exc:
            logger.error(
                "Failed to remove buffered report %s: %s",
                record.id,
                exc,
                extra={"record_id": record.id},
            )

    async def _update_pending_gauge(self) -> None:
        try:
            PENDING_SUBMISSIONS.set(await self.store.count())
        except QueueStoreError as exc:
            logger.debug("Pending gauge not updated: %s", exc)

    # ------------------------------------------------------------------
    # Auto sync
    # ------------------------------------------------------------------

    def start_auto_sync(self) -> None:
        """Sync on reconnect and every ``sync_interval_seconds``; must run inside the loop."""
        if self._timer_task is not None:
            return
        self._unsubscribe_online = self.probe.on_became_online(self._on_online)
        self.probe.start()
        self._timer_task = asyncio.get_running_loop().create_task(self._periodic())
        logger.info("Auto sync started (interval=%ss)", self.sync_interval_seconds)
        if self.probe.is_online():
            self.trigger()

    def stop_auto_sync(self) -> None:
        """Stop future triggers; a pass already running is left to finish."""
        if self._unsubscribe_online is not None:
            self._unsubscribe_online()
            self._unsubscribe_online = None
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None
            logger.info("Auto sync stopped")

    def _on_online(self) -> None:
        logger.info("Back online, syncing pending reports")
        self.trigger()

    async def _periodic(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval_seconds)
            if self.probe.is_online():
                self.trigger()

    async def aclose(self) -> None:
        """Stop triggers, let scheduled passes finish, then release the probe and client."""
        self.stop_auto_sync()
        await self.wait_for_background()
        await self.probe.stop()
        await self.submitter.aclose()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def count(self) -> int:
        return await self.store.count()

    async def get_all(self) -> list[PendingSubmission]:
        return await self.store.get_all()


__all__ = ["SyncCoordinator", "SyncResult"]
