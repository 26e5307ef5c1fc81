# SPDX-License-Identifier: MIT

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from nestegg import time
from nestegg.model.entity_kind import EntityKind
from nestegg.model.sync_status import SyncStatus
from nestegg.service.network import NetworkMonitor
from nestegg.service.recalculate import AggregateRecalculator
from nestegg.service.reconcile import ReconciliationEngine
from nestegg.service.session import Session
from nestegg.service.status import StatusStream
from nestegg.template.sync_status import get_sync_status_template

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Runs sync passes from several trigger sources, never two at a time.

    Triggers are the periodic timer, reconnect events from the network
    monitor and explicit calls to ``perform_sync``. A trigger that arrives
    while a pass is running is dropped, the next tick covers what it missed.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        recalculator: AggregateRecalculator,
        network: NetworkMonitor,
        session: Session,
        interval: float = 300,
        initial_delay: float = 10,
    ) -> None:
        self.engine = engine
        self.recalculator = recalculator
        self.network = network
        self.session = session
        self.interval = interval
        self.initial_delay = initial_delay

        self.is_syncing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self.status: StatusStream[SyncStatus] = StatusStream(
            get_sync_status_template(network.is_online)
        )
        self._timer: Optional[asyncio.Task[None]] = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the timer and listen for reconnects. Needs a running event loop."""
        if self.is_running:
            return
        self._timer = asyncio.create_task(self.__run_timer())
        self._unsubscribe = self.network.subscribe(self.__on_connectivity_change)
        self.refresh_counts()
        logger.info(
            "Scheduler started, first pass in %ss then every %ss",
            self.initial_delay,
            self.interval,
        )

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._tasks)
        if self._timer is not None:
            tasks.append(self._timer)
            self._timer = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def __run_timer(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            await self.perform_sync()
            await asyncio.sleep(self.interval)

    def __on_connectivity_change(self, is_online: bool) -> None:
        self.status.update(is_online=is_online)
        if not is_online:
            return
        logger.info("Back online, starting a sync pass")
        task = asyncio.get_running_loop().create_task(self.perform_sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def refresh_counts(self) -> None:
        self.status.update(
            pending_count=self.engine.count_pending(),
            failed_count=self.engine.count_failed(),
        )

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[list[str]]:
        """
        Hold the single-flight guard for a block of sync work, waiting for a
        running pass to finish first. Yields the list that collects phase
        errors; the status is published when the block exits.
        """
        while self.is_syncing:
            await self._idle.wait()

        self.is_syncing = True
        self._idle.clear()
        self.status.update(is_syncing=True)
        errors: list[str] = []
        try:
            yield errors
        finally:
            self.is_syncing = False
            self._idle.set()
            try:
                pending_count = self.engine.count_pending()
                failed_count = self.engine.count_failed()
            except Exception as e:
                logger.warning("Could not count unsynced records: %s", e)
                pending_count = self.status.value["pending_count"]
                failed_count = self.status.value["failed_count"]
            self.status.update(
                is_syncing=False,
                last_sync_at=time.now_utc(),
                pending_count=pending_count,
                failed_count=failed_count,
                last_error="; ".join(errors) if errors else None,
            )

    async def perform_sync(self) -> bool:
        """
        Run one pass unless one is already running.

        Returns True when this call ran a pass. Skipped (returns False) when
        offline, when nobody is signed in or when a pass is in flight.
        """
        if self.is_syncing:
            logger.debug("Sync already in progress, trigger dropped")
            return False
        if not self.network.is_online:
            logger.debug("Offline, sync skipped")
            return False
        if not self.session.is_authenticated:
            logger.debug("Not signed in, sync skipped")
            return False

        async with self.exclusive() as errors:
            logger.info("Sync pass started")
            await self.run_pass(errors)
            logger.info("Sync pass finished with %d failed phase(s)", len(errors))
        return True

    async def run_pass(self, errors: list[str]) -> None:
        """The phases of one pass, in order. Callers hold ``exclusive``."""
        await self.__run_phase(
            "deposits", lambda: self.engine.sync_kind(EntityKind.DEPOSIT), errors
        )
        await self.__run_phase(
            "withdrawals",
            lambda: self.engine.sync_kind(EntityKind.WITHDRAWAL),
            errors,
        )
        await self.__run_phase("recalculate", self.recalculator.recalculate, errors)
        await self.__run_phase(
            "goals", lambda: self.engine.sync_kind(EntityKind.GOAL), errors
        )

    async def __run_phase(
        self,
        name: str,
        phase: Callable[[], Awaitable[Any]],
        errors: list[str],
    ) -> None:
        try:
            await phase()
        except Exception as e:
            logger.warning("Sync phase %s failed: %s", name, e)
            errors.append(f"{name}: {e}")
