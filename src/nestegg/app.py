# SPDX-License-Identifier: MIT

import logging
from pathlib import Path
from typing import Optional

import httpx

from nestegg import configuration
from nestegg.gateway.remote import RemoteGateway
from nestegg.model.user import User
from nestegg.repository.ledger import LedgerStore
from nestegg.repository.session import SessionRepository
from nestegg.service.ledger import LedgerService
from nestegg.service.network import NetworkMonitor
from nestegg.service.recalculate import AggregateRecalculator
from nestegg.service.reconcile import ReconciliationEngine
from nestegg.service.scheduler import SyncScheduler
from nestegg.service.session import Session
from nestegg.service.sign_in import SignInSyncPipeline, user_from_profile

logger = logging.getLogger(__name__)


class LedgerApp:
    """All components of one running client, wired together once."""

    def __init__(
        self,
        config: configuration.Configuration,
        data_path: Path,
        store: LedgerStore,
        session: Session,
        gateway: RemoteGateway,
        network: NetworkMonitor,
        engine: ReconciliationEngine,
        recalculator: AggregateRecalculator,
        scheduler: SyncScheduler,
        sign_in: SignInSyncPipeline,
        ledger: LedgerService,
    ) -> None:
        self.config = config
        self.data_path = data_path
        self.store = store
        self.session = session
        self.gateway = gateway
        self.network = network
        self.engine = engine
        self.recalculator = recalculator
        self.scheduler = scheduler
        self.sign_in = sign_in
        self.ledger = ledger

    def can_sync(self) -> bool:
        return self.network.is_online and self.session.is_authenticated

    def namespace_path(self, user_id: Optional[int]) -> Path:
        namespace = configuration.GUEST_NAMESPACE if user_id is None else str(user_id)
        return self.data_path / "users" / namespace

    async def login(self, token: str, user: Optional[User] = None) -> User:
        """
        Start a session. Without a user, the profile is fetched with the token.

        Records kept while signed out move into the user's namespace so that
        they are pushed on the next pass.
        """
        if user is None:
            user = user_from_profile(await self.gateway.get_user_profile(token=token))
        self.session.login(token, user)
        self.__adopt_guest_ledger(user["id"])
        self.store.namespace_path = self.namespace_path(user["id"])
        self.scheduler.refresh_counts()
        return user

    def logout(self) -> None:
        self.session.logout()
        self.store.namespace_path = self.namespace_path(None)
        self.scheduler.refresh_counts()

    def __adopt_guest_ledger(self, user_id: int) -> None:
        guest = LedgerStore(self.namespace_path(None))
        history = guest.read_history()
        goals = guest.read_goals()
        if not history and not goals:
            return

        user_store = LedgerStore(self.namespace_path(user_id))
        user_goals = user_store.read_goals()
        taken_names = {goal["name"] for goal in user_goals}
        if any(goal["is_primary"] for goal in user_goals):
            for goal in goals:
                goal["is_primary"] = False
        for goal in goals:
            if goal["name"] in taken_names:
                logger.warning("Dropping guest goal %s, the name is taken", goal["name"])
                continue
            user_goals.append(goal)

        user_store.write_history([*user_store.read_history(), *history])
        user_store.write_goals(user_goals)
        guest.write_history([])
        guest.write_goals([])
        logger.info(
            "Moved %d entries and %d goals into the ledger of user %s",
            len(history),
            len(goals),
            user_id,
        )

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await self.gateway.aclose()


def create_app(
    config: Optional[configuration.Configuration] = None,
    data_path: Optional[Path] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    is_online: bool = False,
) -> LedgerApp:
    """
    Build every component and wire them together.

    ``transport`` replaces the HTTP transport, ``is_online`` sets the initial
    connectivity until the first probe.
    """
    if config is None:
        config = configuration.get_default_configuration()
    if data_path is None:
        data_path = configuration.DATA_PATH

    session = Session(SessionRepository(data_path / "session.yaml"))
    gateway = RemoteGateway(
        config["api_base_url"],
        session.get_token,
        timeout=config["request_timeout_seconds"],
        transport=transport,
    )
    network = NetworkMonitor(probe=gateway.ping, is_online=is_online)

    namespace = configuration.GUEST_NAMESPACE
    if session.user_id is not None:
        namespace = str(session.user_id)
    store = LedgerStore(data_path / "users" / namespace)

    engine = ReconciliationEngine(
        store,
        gateway,
        lambda: session.user_id,
        prune_remote_deletions=config["prune_remote_deletions"],
    )

    def can_sync() -> bool:
        return network.is_online and session.is_authenticated

    recalculator = AggregateRecalculator(store, engine, can_sync)
    scheduler = SyncScheduler(
        engine,
        recalculator,
        network,
        session,
        interval=config["sync_interval_seconds"],
        initial_delay=config["initial_sync_delay_seconds"],
    )
    sign_in = SignInSyncPipeline(
        store, gateway, engine, recalculator, scheduler, network, session
    )
    ledger = LedgerService(
        store,
        gateway,
        engine,
        recalculator,
        session,
        can_sync,
        on_change=scheduler.refresh_counts,
    )
    return LedgerApp(
        config,
        data_path,
        store,
        session,
        gateway,
        network,
        engine,
        recalculator,
        scheduler,
        sign_in,
        ledger,
    )
