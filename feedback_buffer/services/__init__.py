"""Service-layer utilities."""

from .connectivity import ConnectivityProbe, HttpConnectivityProbe, StaticConnectivityProbe
from .queue_store import PersistentQueueStore, QueueStoreError
from .retry_policy import RetryPolicy
from .submission import SubmissionRejected, SubmissionService, SubmitResponse
from .submitter import Delivered, RetryableFailure, Submitter, TerminalFailure
from .sync_coordinator import SyncCoordinator, SyncResult

__all__ = [
    "ConnectivityProbe",
    "HttpConnectivityProbe",
    "StaticConnectivityProbe",
    "PersistentQueueStore",
    "QueueStoreError",
    "RetryPolicy",
    "SubmissionRejected",
    "SubmissionService",
    "SubmitResponse",
    "Delivered",
    "RetryableFailure",
    "Submitter",
    "TerminalFailure",
    "SyncCoordinator",
    "SyncResult",
]
