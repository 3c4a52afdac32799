"""Drain the local submission buffer from the command line.

Examples::

    python -m feedback_buffer.worker.drain --once
    python -m feedback_buffer.worker.drain --list
    python -m feedback_buffer.worker.drain --interval 10 --metrics
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from feedback_buffer.core.config import settings
from feedback_buffer.core.logging_config import setup_logging
from feedback_buffer.services.metrics import start_metrics_server
from feedback_buffer.services.sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deliver buffered bug reports.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single sync pass and exit.")
    mode.add_argument("--list", action="store_true", help="Print pending submissions and exit.")
    mode.add_argument("--clear", action="store_true", help="Delete every pending submission.")
    parser.add_argument(
        "--interval",
        type=float,
        help="Periodic sync interval in seconds (defaults to settings)",
    )
    parser.add_argument(
        "--database-url",
        help="Override the buffer database URL.",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Start the Prometheus exporter while running continuously.",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.interval:
        overrides["sync_interval_seconds"] = args.interval
    if args.database_url:
        overrides["database_url"] = args.database_url
    config = settings.model_copy(update=overrides) if overrides else settings
    coordinator = SyncCoordinator.from_settings(config)

    try:
        if args.list:
            records = await coordinator.get_all()
            print(json.dumps([record.summary() for record in records], indent=2))
            return 0
        if args.clear:
            removed = await coordinator.store.clear()
            print(json.dumps({"cleared": removed}))
            return 0
        if args.once:
            # One probe round so the HTTP probe has a real status.
            await coordinator.probe.check()
            result = await coordinator.run_sync_pass()
            print(json.dumps(result.as_dict()))
            return 0

        if args.metrics:
            start_metrics_server()
        coordinator.start_auto_sync()
        logger.info("Buffer drain worker running (pending=%s)", await coordinator.count())
        while True:
            await asyncio.sleep(3600)
    finally:
        await coordinator.aclose()


def main(argv: list[str] | None = None) -> int:
    setup_logging(service_name="feedback-buffer-worker")
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Shutting down buffer drain worker")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
