"""Prometheus metrics for the submission buffer."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from feedback_buffer.core.config import settings

logger = logging.getLogger(__name__)

_METRICS_SERVER_STARTED = False

SYNC_PASS_SECONDS = Histogram(
    "feedback_buffer_sync_pass_seconds",
    "Runtime of each sync pass over the buffered submissions.",
)
DELIVERED_TOTAL = Counter(
    "feedback_buffer_delivered_total",
    "Buffered submissions delivered to the ingestion endpoint.",
)
DROPPED_TOTAL = Counter(
    "feedback_buffer_dropped_total",
    "Buffered submissions dropped without delivery.",
    ["reason"],
)
RETRIES_TOTAL = Counter(
    "feedback_buffer_retries_total",
    "Failed delivery attempts that were rescheduled.",
)
PENDING_SUBMISSIONS = Gauge(
    "feedback_buffer_pending",
    "Submissions waiting in the local buffer after the most recent pass.",
)


def start_metrics_server(host: str | None = None, port: int | None = None) -> bool:
    """Start the standalone exporter once per process; returns whether it is running."""
    global _METRICS_SERVER_STARTED
    if not settings.metrics_enabled:
        return False
    if _METRICS_SERVER_STARTED:
        return True
    bind_host = host or settings.metrics_host
    bind_port = port or settings.metrics_port
    start_http_server(bind_port, addr=bind_host)
    logger.info("Prometheus metrics exporter listening on %s:%s", bind_host, bind_port)
    _METRICS_SERVER_STARTED = True
    return True


__all__ = [
    "DELIVERED_TOTAL",
    "DROPPED_TOTAL",
    "PENDING_SUBMISSIONS",
    "RETRIES_TOTAL",
    "SYNC_PASS_SECONDS",
    "start_metrics_server",
]
