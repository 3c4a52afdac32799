"""Exponential backoff schedule for buffered submissions.

The policy is stateless: everything it needs lives on the record
(``retry_count`` and ``last_attempt_at``).  A record that has never failed is
always eligible; after the n-th failure it waits
``min(INITIAL_DELAY * MULTIPLIER ** n, MAX_DELAY)`` from its last attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from feedback_buffer.core.config import Settings
from feedback_buffer.models import PendingSubmission
from feedback_buffer.services.clock import utcnow

INITIAL_DELAY = timedelta(seconds=5)
MULTIPLIER = 2
MAX_DELAY = timedelta(seconds=300)
MAX_RETRIES = 5


@dataclass(frozen=True)
class RetryPolicy:
    initial_delay: timedelta = INITIAL_DELAY
    multiplier: float = MULTIPLIER
    max_delay: timedelta = MAX_DELAY
    max_retries: int = MAX_RETRIES

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        return cls(
            initial_delay=timedelta(seconds=config.retry_initial_delay_seconds),
            multiplier=config.retry_backoff_multiplier,
            max_delay=timedelta(seconds=config.retry_max_delay_seconds),
            max_retries=max(1, config.retry_max_attempts),
        )

    def retry_delay(self, retry_count: int) -> timedelta:
        seconds = self.initial_delay.total_seconds() * (self.multiplier ** retry_count)
        return min(timedelta(seconds=seconds), self.max_delay)

    def next_eligible_at(self, retry_count: int, last_attempt_at: datetime) -> datetime:
        return last_attempt_at + self.retry_delay(retry_count)

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def is_eligible(self, record: PendingSubmission, now: datetime) -> bool:
        if record.retry_count == 0 or record.last_attempt_at is None:
            return True
        return now >= self.next_eligible_at(record.retry_count, record.last_attempt_at)


DEFAULT_POLICY = RetryPolicy()


def retry_delay(retry_count: int) -> timedelta:
    return DEFAULT_POLICY.retry_delay(retry_count)


def next_eligible_at(retry_count: int, last_attempt_at: datetime) -> datetime:
    return DEFAULT_POLICY.next_eligible_at(retry_count, last_attempt_at)


def is_exhausted(retry_count: int) -> bool:
    return DEFAULT_POLICY.is_exhausted(retry_count)


def is_eligible(record: PendingSubmission, now: Optional[datetime] = None) -> bool:
    return DEFAULT_POLICY.is_eligible(record, now or utcnow())


__all__ = [
    "INITIAL_DELAY",
    "MULTIPLIER",
    "MAX_DELAY",
    "MAX_RETRIES",
    "RetryPolicy",
    "DEFAULT_POLICY",
    "retry_delay",
    "next_eligible_at",
    "is_exhausted",
    "is_eligible",
]
