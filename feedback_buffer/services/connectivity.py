"""Connectivity probes: current online status plus online-transition listeners.

The coordinator only needs two things from the host: ``is_online()`` and a
way to be told when the host comes back online.  Status is best-effort; a
probe may report online while a captive portal still blocks traffic.
Listeners fire once per offline -> online transition; upstream transition
storms are not debounced here.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from feedback_buffer.core.config import settings

logger = logging.getLogger(__name__)

OnlineCallback = Callable[[], Union[None, Awaitable[Any]]]


class ConnectivityProbe:
    """Base probe with listener bookkeeping; subclasses own the status."""

    def __init__(self) -> None:
        self._callbacks: list[OnlineCallback] = []
        self._pending: set[asyncio.Task[Any]] = set()

    def is_online(self) -> bool:
        raise NotImplementedError

    def on_became_online(self, callback: OnlineCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    async def check(self) -> bool:
        """Refresh and return the current status."""
        return self.is_online()

    def start(self) -> None:
        """Begin monitoring; no-op for probes whose status is pushed in."""

    async def stop(self) -> None:
        return None

    @property
    def listener_count(self) -> int:
        return len(self._callbacks)

    def _notify_online(self) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback()
            except Exception:
                logger.exception("Connectivity listener failed")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)


class StaticConnectivityProbe(ConnectivityProbe):
    """Status pushed in by the host (browser ``online`` events, tests, CLI flags)."""

    def __init__(self, online: bool = True) -> None:
        super().__init__()
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("Connectivity restored")
            self._notify_online()
        elif was_online and not online:
            logger.info("Connectivity lost")


class HttpConnectivityProbe(ConnectivityProbe):
    """Polls a URL in the background; any HTTP response counts as online."""

    def __init__(
        self,
        url: str | None = None,
        interval_seconds: float | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.url = url or settings.connectivity_check_url
        if not self.url:
            raise ValueError("connectivity_check_url is not configured")
        self.interval_seconds = interval_seconds or settings.connectivity_check_interval
        self.timeout = timeout or settings.connectivity_check_timeout
        self._client = client
        self._owns_client = client is None
        self._online = False
        self._task: Optional[asyncio.Task[None]] = None

    def is_online(self) -> bool:
        return self._online

    async def check(self) -> bool:
        """Probe once, update status and fire listeners on a transition."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        try:
            await self._client.head(self.url, timeout=self.timeout)
            online = True
        except httpx.HTTPError as exc:
            logger.debug("Connectivity probe to %s failed: %s", self.url, exc)
            online = False

        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("Connectivity restored (%s reachable)", self.url)
            self._notify_online()
        elif was_online and not online:
            logger.warning("Connectivity lost (%s unreachable)", self.url)
        return online

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._poll())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _poll(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval_seconds)


__all__ = [
    "ConnectivityProbe",
    "HttpConnectivityProbe",
    "OnlineCallback",
    "StaticConnectivityProbe",
]
