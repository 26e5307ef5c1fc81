# SPDX-License-Identifier: MIT

import logging
from decimal import Decimal
from typing import Any, Callable, Optional, cast, get_args

import pendulum

from nestegg import time
from nestegg.gateway.errors import GatewayError
from nestegg.gateway.remote import RemoteGateway
from nestegg.model.entity_id import EntityId
from nestegg.model.entity_kind import EntityKind
from nestegg.model.goal import Goal
from nestegg.model.ledger_entry import Deposit, LedgerEntry, Withdrawal
from nestegg.model.settings import AppSettings, ReminderFrequency, Theme
from nestegg.model.sync_state import SyncState
from nestegg.repository.ledger import LedgerStore
from nestegg.service.recalculate import AggregateRecalculator
from nestegg.service.recalculate import get_total_savings as ledger_total
from nestegg.service.reconcile import ReconciliationEngine
from nestegg.service.session import Session
from nestegg.template.goal import get_goal_template
from nestegg.template.ledger_entry import (
    get_deposit_template,
    get_withdrawal_template,
)

logger = logging.getLogger(__name__)


class LedgerValidationError(Exception):
    """Raised when a local mutation is rejected before it reaches the store."""

    pass


def _entry_kind(entry: LedgerEntry) -> EntityKind:
    return EntityKind(entry["entry_type"])


def _require_positive(amount: Decimal, label: str) -> None:
    if amount <= 0:
        raise LedgerValidationError(f"{label} must be greater than zero.")


def _mark_modified(record: Any) -> None:
    record["sync_state"] = SyncState.UNSYNCED
    record["sync_error"] = None
    record["updated_at"] = time.now_utc()


class LedgerService:
    """
    The write path for user mutations.

    Every mutation is written locally first and then pushed best-effort when
    a sync is possible; anything that does not reach the remote authority
    stays unsynced for the next scheduled pass.
    """

    def __init__(
        self,
        store: LedgerStore,
        gateway: RemoteGateway,
        engine: ReconciliationEngine,
        recalculator: AggregateRecalculator,
        session: Session,
        can_sync: Callable[[], bool],
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.engine = engine
        self.recalculator = recalculator
        self.session = session
        self.can_sync = can_sync
        self.on_change = on_change

    def __changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    async def __push(self, kind: EntityKind, local_id: EntityId) -> None:
        if self.can_sync():
            await self.engine.push_record(kind, local_id)

    # ─────────────────────────────────────────────────────────────
    # Entries
    # ─────────────────────────────────────────────────────────────

    def list_entries(self) -> list[LedgerEntry]:
        return self.store.read_history()

    def find_entry(self, id_or_prefix: str) -> LedgerEntry:
        """Resolve a local id or an unambiguous prefix of one."""
        history = self.store.read_history()
        exact = [entry for entry in history if entry["local_id"] == id_or_prefix]
        if exact:
            return exact[0]
        matches = [
            entry for entry in history if entry["local_id"].startswith(id_or_prefix)
        ]
        if len(matches) == 0:
            raise LedgerValidationError(f"No entry matches '{id_or_prefix}'.")
        if len(matches) > 1:
            raise LedgerValidationError(
                f"'{id_or_prefix}' matches {len(matches)} entries, use a longer id."
            )
        return matches[0]

    async def add_deposit(
        self,
        amount: Decimal,
        occurred_at: Optional[pendulum.DateTime] = None,
        notes: Optional[str] = None,
        net_income_at_time: Optional[Decimal] = None,
    ) -> Deposit:
        _require_positive(amount, "Deposit amount")

        deposit = get_deposit_template()
        deposit["amount"] = amount
        deposit["notes"] = notes
        if occurred_at is not None:
            deposit["occurred_at"] = occurred_at
        if net_income_at_time is None:
            net_income = self.store.read_net_income()
            net_income_at_time = net_income if net_income > 0 else None
        deposit["net_income_at_time"] = net_income_at_time

        history = self.store.read_history()
        history.append(deposit)
        self.store.write_history(history)
        logger.info("Added deposit %s of %s", deposit["local_id"], amount)

        await self.__after_entry_change(EntityKind.DEPOSIT, deposit["local_id"])
        return cast(Deposit, self.__reread_entry(deposit))

    async def add_withdrawal(
        self,
        amount: Decimal,
        goal_name: Optional[str] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        occurred_at: Optional[pendulum.DateTime] = None,
    ) -> Withdrawal:
        _require_positive(amount, "Withdrawal amount")

        target_goal_ref: Optional[EntityId] = None
        if goal_name is not None:
            goal = self.find_goal(goal_name)
            target_goal_ref = goal["local_id"]
            available = goal["current_amount"]
        else:
            available = ledger_total(self.store.read_history())
        if amount > available:
            raise LedgerValidationError(
                f"Insufficient balance: {amount} requested, {available} available."
            )

        withdrawal = get_withdrawal_template()
        withdrawal["amount"] = amount
        withdrawal["target_goal_ref"] = target_goal_ref
        withdrawal["reason"] = reason
        withdrawal["notes"] = notes
        if occurred_at is not None:
            withdrawal["occurred_at"] = occurred_at

        history = self.store.read_history()
        history.append(withdrawal)
        self.store.write_history(history)
        logger.info("Added withdrawal %s of %s", withdrawal["local_id"], amount)

        await self.__after_entry_change(EntityKind.WITHDRAWAL, withdrawal["local_id"])
        return cast(Withdrawal, self.__reread_entry(withdrawal))

    async def modify_entry(
        self,
        id_or_prefix: str,
        amount: Optional[Decimal] = None,
        occurred_at: Optional[pendulum.DateTime] = None,
        notes: Optional[str] = None,
        remove_notes: bool = False,
        net_income_at_time: Optional[Decimal] = None,
        reason: Optional[str] = None,
    ) -> LedgerEntry:
        local_id = self.find_entry(id_or_prefix)["local_id"]
        if amount is not None:
            _require_positive(amount, "Amount")

        history = self.store.read_history()
        entry = next(entry for entry in history if entry["local_id"] == local_id)
        if amount is not None:
            entry["amount"] = amount
        if occurred_at is not None:
            entry["occurred_at"] = occurred_at
        if notes is not None:
            entry["notes"] = notes
        if remove_notes:
            entry["notes"] = None
        if entry["entry_type"] == "deposit":
            if net_income_at_time is not None:
                entry["net_income_at_time"] = net_income_at_time
        elif reason is not None:
            entry["reason"] = reason
        _mark_modified(entry)
        self.store.write_history(history)

        await self.__after_entry_change(_entry_kind(entry), local_id)
        return self.__reread_entry(entry)

    async def delete_entry(self, id_or_prefix: str) -> LedgerEntry:
        """
        Remove an entry locally and best-effort remotely.

        A failed remote delete is not retried, the remote mirror stays behind.
        """
        entry = self.find_entry(id_or_prefix)
        history = [
            candidate
            for candidate in self.store.read_history()
            if candidate["local_id"] != entry["local_id"]
        ]
        self.store.write_history(history)
        logger.info("Deleted %s %s", entry["entry_type"], entry["local_id"])

        if entry["remote_id"] is not None and self.can_sync():
            await self.engine.delete_remote(_entry_kind(entry), entry["remote_id"])
        await self.recalculator.recalculate()
        self.__changed()
        return entry

    async def __after_entry_change(self, kind: EntityKind, local_id: EntityId) -> None:
        await self.__push(kind, local_id)
        await self.recalculator.recalculate()
        self.__changed()

    def __reread_entry(self, entry: LedgerEntry) -> LedgerEntry:
        for candidate in self.store.read_history():
            if candidate["local_id"] == entry["local_id"]:
                return candidate
        return entry

    # ─────────────────────────────────────────────────────────────
    # Goals
    # ─────────────────────────────────────────────────────────────

    def list_goals(self) -> list[Goal]:
        return self.store.read_goals()

    def find_goal(self, name: str) -> Goal:
        for goal in self.store.read_goals():
            if goal["name"] == name:
                return goal
        raise LedgerValidationError(f"No goal named '{name}'.")

    async def add_goal(
        self,
        name: str,
        target_amount: Decimal,
        is_primary: bool = False,
        current_amount: Decimal = Decimal("0"),
    ) -> Goal:
        name = name.strip()
        if not name:
            raise LedgerValidationError("Goal name must not be empty.")
        _require_positive(target_amount, "Target amount")
        if current_amount < 0:
            raise LedgerValidationError("Current amount must not be negative.")

        goals = self.store.read_goals()
        if any(goal["name"] == name for goal in goals):
            raise LedgerValidationError(f"A goal named '{name}' already exists.")

        goal = get_goal_template()
        goal["name"] = name
        goal["target_amount"] = target_amount
        goal["current_amount"] = current_amount
        goals.append(goal)
        self.store.write_goals(goals)
        logger.info("Added goal %s", name)

        if is_primary:
            await self.set_primary_goal(name)
        else:
            await self.__push(EntityKind.GOAL, goal["local_id"])
            self.__changed()
        return self.find_goal(name)

    async def modify_goal(
        self,
        name: str,
        new_name: Optional[str] = None,
        target_amount: Optional[Decimal] = None,
        is_primary: Optional[bool] = None,
    ) -> Goal:
        local_id = self.find_goal(name)["local_id"]
        if target_amount is not None:
            _require_positive(target_amount, "Target amount")

        goals = self.store.read_goals()
        if new_name is not None:
            new_name = new_name.strip()
            if not new_name:
                raise LedgerValidationError("Goal name must not be empty.")
            if any(
                goal["name"] == new_name and goal["local_id"] != local_id
                for goal in goals
            ):
                raise LedgerValidationError(f"A goal named '{new_name}' already exists.")

        goal = next(goal for goal in goals if goal["local_id"] == local_id)
        if new_name is not None:
            goal["name"] = new_name
        if target_amount is not None:
            goal["target_amount"] = target_amount
        if is_primary is False:
            goal["is_primary"] = False
        _mark_modified(goal)
        self.store.write_goals(goals)

        await self.__push(EntityKind.GOAL, local_id)
        if is_primary:
            await self.set_primary_goal(goal["name"])
        else:
            self.__changed()
        return self.find_goal(goal["name"])

    async def delete_goal(self, name: str) -> Goal:
        goal = self.find_goal(name)
        goals = [
            candidate
            for candidate in self.store.read_goals()
            if candidate["local_id"] != goal["local_id"]
        ]
        self.store.write_goals(goals)
        logger.info("Deleted goal %s", name)

        if goal["remote_id"] is not None and self.can_sync():
            await self.engine.delete_remote(EntityKind.GOAL, goal["remote_id"])
        self.__changed()
        return goal

    async def set_primary_goal(self, name: str) -> Goal:
        """
        Make one goal primary and every other goal not primary in one write.

        Goals whose flag changed become unsynced. When possible the change is
        sent through the dedicated set-primary call, which updates every flag
        on the remote side at once.
        """
        target = self.find_goal(name)
        goals = self.store.read_goals()
        changed: list[Goal] = []
        previously_synced: set[EntityId] = set()
        for goal in goals:
            should_be_primary = goal["local_id"] == target["local_id"]
            if goal["is_primary"] == should_be_primary:
                continue
            if goal["sync_state"] is SyncState.SYNCED:
                previously_synced.add(goal["local_id"])
            goal["is_primary"] = should_be_primary
            _mark_modified(goal)
            changed.append(goal)
        self.store.write_goals(goals)
        logger.info("Primary goal is now %s", name)

        if changed and self.can_sync():
            await self.__push_primary_change(target, changed, previously_synced)

        await self.recalculator.recalculate()
        self.__changed()
        return self.find_goal(name)

    async def __push_primary_change(
        self,
        target: Goal,
        changed: list[Goal],
        previously_synced: set[EntityId],
    ) -> None:
        if target["remote_id"] is not None:
            try:
                await self.gateway.set_primary_goal(target["remote_id"])
            except GatewayError as e:
                logger.warning("Could not set primary goal remotely: %s", e.message)
            else:
                for goal in changed:
                    if goal["local_id"] in previously_synced:
                        self.engine.patch_record(
                            EntityKind.GOAL,
                            goal["local_id"],
                            {"sync_state": SyncState.SYNCED, "sync_error": None},
                            expected_updated_at=goal["updated_at"],
                        )
                return
        for goal in changed:
            await self.engine.push_record(EntityKind.GOAL, goal["local_id"])

    # ─────────────────────────────────────────────────────────────
    # Net income, settings and totals
    # ─────────────────────────────────────────────────────────────

    def get_net_income(self) -> Decimal:
        return self.store.read_net_income()

    async def set_net_income(self, net_income: Decimal) -> None:
        if net_income < 0:
            raise LedgerValidationError("Net income must not be negative.")
        self.store.write_net_income(net_income)

        if not self.can_sync():
            return
        try:
            await self.gateway.update_net_income(net_income)
        except GatewayError as e:
            logger.warning("Could not update net income remotely: %s", e.message)
            return
        user = self.session.current_user
        if user is not None:
            user["net_income"] = net_income
            self.session.update_user(user)

    def get_settings(self) -> AppSettings:
        return self.store.read_settings()

    def save_settings(
        self,
        profile_picture: Optional[str] = None,
        voice_notifications_enabled: Optional[bool] = None,
        reminder_frequency: Optional[str] = None,
        theme: Optional[str] = None,
    ) -> AppSettings:
        settings = self.store.read_settings()
        if profile_picture is not None:
            settings["profile_picture"] = profile_picture
        if voice_notifications_enabled is not None:
            settings["voice_notifications_enabled"] = voice_notifications_enabled
        if reminder_frequency is not None:
            if reminder_frequency not in get_args(ReminderFrequency):
                raise LedgerValidationError(
                    f"Invalid reminder frequency: {reminder_frequency}. Valid options: "
                    f"{', '.join(get_args(ReminderFrequency))}"
                )
            settings["reminder_frequency"] = cast(ReminderFrequency, reminder_frequency)
        if theme is not None:
            if theme not in get_args(Theme):
                raise LedgerValidationError(
                    f"Invalid theme: {theme}. Valid options: {', '.join(get_args(Theme))}"
                )
            settings["theme"] = cast(Theme, theme)
        self.store.write_settings(settings)
        return settings

    def get_total_savings(self) -> Decimal:
        return ledger_total(self.store.read_history())
