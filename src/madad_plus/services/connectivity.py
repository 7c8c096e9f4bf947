"""Network connectivity monitoring.

The offline queue only needs two things from a monitor: a point-in-time
``is_online()`` read and an ``on_change`` subscription that fires on
transitions. ``ManualConnectivityMonitor`` is fed by the UI, which forwards
its own online/offline events; ``ProbeConnectivityMonitor`` decides for
itself by periodically probing a URL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Protocol

import httpx

from madad_plus.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_INTERNAL_SERVER_ERROR = 500

ConnectivityListener = Callable[[bool], None]
Unsubscribe = Callable[[], None]


class ConnectivityMonitor(Protocol):
    """Source of online/offline state and its transitions."""

    def is_online(self) -> bool:
        ...

    def on_change(self, callback: ConnectivityListener) -> Unsubscribe:
        ...


class ManualConnectivityMonitor:
    """Connectivity state that changes only when told to."""

    source = "manual"

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[ConnectivityListener] = []

    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: ConnectivityListener) -> Unsubscribe:
        """Register ``callback`` for transitions and return its unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """Record the current state and notify listeners on a transition.

        Returns:
            True if the state actually changed.
        """
        if online == self._online:
            return False

        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)
        return True


class ProbeConnectivityMonitor(ManualConnectivityMonitor):
    """Periodically probes a URL and reports reachability transitions."""

    source = "probe"

    def __init__(
        self,
        url: str,
        *,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
        online: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(online=online)
        self.url = url
        self.interval_seconds = max(
            0.1,
            float(interval_seconds or settings.connectivity_probe_interval_seconds),
        )
        self.timeout_seconds = float(timeout_seconds or settings.connectivity_probe_timeout_seconds)
        self._transport = transport
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background probe loop."""

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background probe loop."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def probe_once(self) -> bool:
        """Probe the configured URL once and record the outcome."""
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.get(self.url)
            reachable = response.status_code < HTTP_INTERNAL_SERVER_ERROR
        except httpx.HTTPError as exc:
            logger.debug("Connectivity probe to %s failed: %s", self.url, exc)
            reachable = False

        self.set_online(reachable)
        return reachable

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.probe_once()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)


def build_connectivity_monitor() -> ManualConnectivityMonitor:
    """Create the monitor selected by configuration."""
    if settings.probe_enabled:
        return ProbeConnectivityMonitor(
            settings.connectivity_probe_url or "",
            online=settings.connectivity_initial_online,
        )
    return ManualConnectivityMonitor(online=settings.connectivity_initial_online)
