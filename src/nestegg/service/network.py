# SPDX-License-Identifier: MIT

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]
Probe = Callable[[], Awaitable[bool]]


class NetworkMonitor:
    """
    Tracks whether the remote authority is reachable.

    Listeners are called on every transition with the new state, so a
    listener that only cares about reconnects checks for ``True``.
    """

    def __init__(self, probe: Optional[Probe] = None, is_online: bool = False) -> None:
        self._probe = probe
        self._is_online = is_online
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_online(self) -> bool:
        return self._is_online

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, is_online: bool) -> None:
        if is_online == self._is_online:
            return
        self._is_online = is_online
        logger.info("Connectivity changed: %s", "online" if is_online else "offline")
        for listener in list(self._listeners):
            try:
                listener(is_online)
            except Exception:
                logger.exception("Connectivity listener failed")

    async def probe(self) -> bool:
        """Check reachability once and record the result."""
        if self._probe is None:
            return self._is_online
        try:
            reachable = await self._probe()
        except Exception as e:
            logger.debug("Connectivity probe failed: %s", e)
            reachable = False
        self.set_online(reachable)
        return reachable

    async def watch(self, interval: float) -> None:
        """Probe forever at a fixed interval. Runs until cancelled."""
        while True:
            await self.probe()
            await asyncio.sleep(interval)
