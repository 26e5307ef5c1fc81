# SPDX-License-Identifier: MIT

import logging
from decimal import Decimal
from typing import Any, Optional

from nestegg.gateway.errors import GatewayError
from nestegg.gateway.remote import RemoteGateway
from nestegg.gateway.wire import decimal_from_wire
from nestegg.model.entity_kind import EntityKind
from nestegg.model.sync_status import SignInSyncStatus
from nestegg.model.user import User
from nestegg.repository.ledger import LedgerStore
from nestegg.service.network import NetworkMonitor
from nestegg.service.recalculate import AggregateRecalculator
from nestegg.service.reconcile import ReconciliationEngine
from nestegg.service.scheduler import SyncScheduler
from nestegg.service.session import Session
from nestegg.service.status import StatusStream
from nestegg.template.sync_status import get_sign_in_sync_status_template

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "name",
    "email",
    "profile_picture",
    "voice_notifications_enabled",
    "reminder_frequency",
    "theme",
)
SETTINGS_FIELDS = (
    "profile_picture",
    "voice_notifications_enabled",
    "reminder_frequency",
    "theme",
)


class SignInSyncPipeline:
    """
    One-shot sync run when a session starts: push local changes, pull the
    profile, entries and goals, then recalculate and run a full pass.

    Progress is published on ``status``. Failures end up there too and are
    never raised, so a broken sync cannot block signing in.
    """

    def __init__(
        self,
        store: LedgerStore,
        gateway: RemoteGateway,
        engine: ReconciliationEngine,
        recalculator: AggregateRecalculator,
        scheduler: SyncScheduler,
        network: NetworkMonitor,
        session: Session,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.engine = engine
        self.recalculator = recalculator
        self.scheduler = scheduler
        self.network = network
        self.session = session
        self.status: StatusStream[SignInSyncStatus] = StatusStream(
            get_sign_in_sync_status_template()
        )
        self._completed_for: Optional[tuple[int, str]] = None

    def __session_key(self) -> Optional[tuple[int, str]]:
        user = self.session.current_user
        token = self.session.get_token()
        if user is None or token is None:
            return None
        return (user["id"], token)

    async def run(self, force: bool = False) -> SignInSyncStatus:
        session_key = self.__session_key()
        if not self.network.is_online or session_key is None:
            logger.info("Sign-in sync skipped: offline or not signed in")
            self.status.update(
                is_loading=False,
                current_step="Skipped",
                progress=100,
                error=None,
                completed=True,
            )
            return self.status.value
        if session_key == self._completed_for and not force:
            logger.debug("Sign-in sync already ran for this session")
            return self.status.value

        self._completed_for = session_key
        self.status.update(
            is_loading=True,
            current_step="Starting synchronization...",
            progress=0,
            error=None,
            completed=False,
        )
        try:
            async with self.scheduler.exclusive() as errors:
                await self.__push_local_changes()

                self.status.update(
                    current_step="Loading profile from server...", progress=40
                )
                await self.__merge_profile()

                self.status.update(current_step="Loading savings data...", progress=50)
                await self.engine.pull(EntityKind.DEPOSIT)
                await self.engine.pull(EntityKind.WITHDRAWAL)

                self.status.update(current_step="Loading goals data...", progress=70)
                await self.engine.pull(EntityKind.GOAL)

                self.status.update(
                    current_step="Finalizing synchronization...", progress=90
                )
                await self.recalculator.recalculate()
                await self.scheduler.run_pass(errors)
        except Exception as e:
            logger.warning("Sign-in sync failed: %s", e)
            self.status.update(
                is_loading=False,
                current_step="Synchronization failed",
                progress=0,
                error=str(e) or type(e).__name__,
                completed=False,
            )
            return self.status.value

        self.scheduler.refresh_counts()
        self.status.update(
            is_loading=False,
            current_step="Synchronization completed successfully",
            progress=100,
            completed=True,
        )
        logger.info("Sign-in sync completed")
        return self.status.value

    async def __push_local_changes(self) -> None:
        self.status.update(current_step="Syncing local changes to server...", progress=10)
        for kind in (EntityKind.DEPOSIT, EntityKind.WITHDRAWAL, EntityKind.GOAL):
            await self.engine.push(kind)

        user = self.session.current_user
        net_income = self.store.read_net_income()
        if user is None or net_income == (user["net_income"] or Decimal("0")):
            return
        try:
            await self.gateway.update_net_income(net_income)
        except GatewayError as e:
            logger.warning("Could not push net income: %s", e.message)
            return
        user["net_income"] = net_income
        self.session.update_user(user)

    async def __merge_profile(self) -> None:
        profile = await self.gateway.get_user_profile()
        user = self.session.current_user
        if user is None:
            return

        merged: dict[str, Any] = dict(user)
        for field in PROFILE_FIELDS:
            if profile.get(field) is not None:
                merged[field] = profile[field]
        remote_net_income = decimal_from_wire(profile.get("net_income"))
        if remote_net_income is not None:
            merged["net_income"] = remote_net_income
        self.session.update_user(merged)  # type: ignore[arg-type]

        # A fresh install has no local net income yet
        if remote_net_income and self.store.read_net_income() == 0:
            self.store.write_net_income(remote_net_income)

        settings = self.store.read_settings()
        for field in SETTINGS_FIELDS:
            if profile.get(field) is not None:
                settings[field] = profile[field]  # type: ignore[literal-required]
        self.store.write_settings(settings)


def user_from_profile(profile: dict[str, Any]) -> User:
    """Build a session user from a profile returned by the server."""
    return {
        "id": int(profile["id"]),
        "name": profile.get("name"),
        "email": profile.get("email"),
        "net_income": decimal_from_wire(profile.get("net_income")),
        "profile_picture": profile.get("profile_picture"),
        "voice_notifications_enabled": bool(
            profile.get("voice_notifications_enabled", True)
        ),
        "reminder_frequency": profile.get("reminder_frequency") or "weekly",
        "theme": profile.get("theme") or "light",
    }
